"""Static analysis: analyzer protocol, built-in analyzers and the dispatch gateway."""

from .base import StaticAnalyzer
from .gateway import StaticAnalysisGateway
from .javascript import ESLINT_CONFIG_FILES, EslintAnalyzer
from .python import BanditAnalyzer, RuffAnalyzer
from .session import AnalysisSession, LintConfig

__all__ = [
    "AnalysisSession",
    "BanditAnalyzer",
    "ESLINT_CONFIG_FILES",
    "EslintAnalyzer",
    "LintConfig",
    "RuffAnalyzer",
    "StaticAnalysisGateway",
    "StaticAnalyzer",
]
