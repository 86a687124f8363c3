from .questionnaire import (  # noqa: F401
    Answer,
    Choice,
    Company,
    ListTableColumn,
    Question,
    QuestionTag,
    Section,
    Sheet,
    SheetTag,
    Subsection,
    Tag,
    User,
    UTCDateTime,
    new_uuid,
    utcnow,
)

__all__ = [
    "Company",
    "User",
    "Section",
    "Subsection",
    "Tag",
    "Question",
    "QuestionTag",
    "Choice",
    "ListTableColumn",
    "Sheet",
    "SheetTag",
    "Answer",
    "UTCDateTime",
    "new_uuid",
    "utcnow",
]
