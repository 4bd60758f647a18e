"""Language profile registry - single source of truth.

Every supported language maps to exactly one row: the container image, the
file the submission is written to, and the shell command that builds and runs
it. Changing a toolchain means editing one row here, never the executor.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..models.errors import UnsupportedLanguageError


class Language(str, Enum):
    """Supported submission languages."""

    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    KOTLIN = "kotlin"
    JAVA = "java"
    CPP = "cpp"
    GO = "go"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Language":
        """Resolve a language name case-insensitively.

        Raises:
            UnsupportedLanguageError: if the value is not one of the members.
        """
        normalized = (value or "").lower()
        try:
            return cls(normalized)
        except ValueError:
            raise UnsupportedLanguageError(value or "") from None


@dataclass(frozen=True)
class LanguageProfile:
    """How to build and run one language's submission."""

    language: Language
    image: str  # Container image reference
    filename: str  # Canonical source file name inside the workspace
    run_command: str  # Shell command executed from the code directory
    environment: Dict[str, str] = field(default_factory=dict)


# Compiled artifacts go to /tmp: the code directory is mounted read-only.
LANGUAGE_PROFILES: Dict[Language, LanguageProfile] = {
    Language.PYTHON: LanguageProfile(
        language=Language.PYTHON,
        image="python:3.11-slim",
        filename="solution.py",
        run_command="python solution.py",
        environment={"PYTHONUNBUFFERED": "1", "PYTHONDONTWRITEBYTECODE": "1"},
    ),
    Language.JAVASCRIPT: LanguageProfile(
        language=Language.JAVASCRIPT,
        image="node:18-alpine",
        filename="solution.js",
        run_command="node solution.js",
    ),
    Language.TYPESCRIPT: LanguageProfile(
        language=Language.TYPESCRIPT,
        image="node:18-alpine",
        filename="solution.ts",
        run_command=(
            "cp solution.ts /tmp/ && cd /tmp && npm install --silent typescript "
            "&& npx tsc solution.ts --outDir /tmp/dist --target ES2020 "
            "--module CommonJS && node /tmp/dist/solution.js"
        ),
        environment={"npm_config_cache": "/tmp/.npm"},
    ),
    Language.KOTLIN: LanguageProfile(
        language=Language.KOTLIN,
        image="eclipse-temurin:17-jdk-alpine",
        filename="Solution.kt",
        run_command=(
            "kotlinc Solution.kt -include-runtime -d /tmp/Solution.jar "
            "&& java -jar /tmp/Solution.jar"
        ),
    ),
    Language.JAVA: LanguageProfile(
        language=Language.JAVA,
        image="eclipse-temurin:17-jdk-alpine",
        filename="Solution.java",
        run_command="javac -d /tmp/build Solution.java && java -cp /tmp/build Solution",
    ),
    Language.CPP: LanguageProfile(
        language=Language.CPP,
        image="gcc:latest",
        filename="solution.cpp",
        run_command="g++ -O2 -o /tmp/solution solution.cpp && /tmp/solution",
    ),
    Language.GO: LanguageProfile(
        language=Language.GO,
        image="golang:1.21-alpine",
        filename="main.go",
        run_command="go run main.go",
        environment={
            "HOME": "/tmp",
            "GOCACHE": "/tmp/go-build",
            "GOPATH": "/tmp/go",
        },
    ),
}


def get_profile(language) -> LanguageProfile:
    """Get the profile for a language member or name.

    Raises:
        UnsupportedLanguageError: for names outside the registry.
    """
    if not isinstance(language, Language):
        language = Language.parse(language)
    return LANGUAGE_PROFILES[language]


def get_supported_languages() -> List[str]:
    """Get list of supported language names."""
    return [language.value for language in LANGUAGE_PROFILES]


def is_supported_language(value: Optional[str]) -> bool:
    """Check if a language name is supported."""
    return (value or "").lower() in get_supported_languages()
