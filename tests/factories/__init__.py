"""Factory exports for tests."""

from .base import SQLAlchemyFactory, set_factory_session
from .questionnaire import (
    AnswerFactory,
    ChoiceFactory,
    CompanyFactory,
    QuestionFactory,
    QuestionTagFactory,
    SectionFactory,
    SheetFactory,
    SheetTagFactory,
    SubsectionFactory,
    TagFactory,
)

__all__ = [
    "SQLAlchemyFactory",
    "set_factory_session",
    "AnswerFactory",
    "ChoiceFactory",
    "CompanyFactory",
    "QuestionFactory",
    "QuestionTagFactory",
    "SectionFactory",
    "SheetFactory",
    "SheetTagFactory",
    "SubsectionFactory",
    "TagFactory",
]
