"""Core test execution functionality."""

from markerrunner.core.engine import PytestEngine
from markerrunner.core.runner import TestRunner
from markerrunner.core.translator import ResultTranslator

__all__ = ["TestRunner", "PytestEngine", "ResultTranslator"]
