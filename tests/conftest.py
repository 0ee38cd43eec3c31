"""
Pytest configuration and fixtures for the voice companion tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root and src to Python path for imports
project_root = Path(__file__).parent.parent
for path in (project_root, project_root / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from voice_companion.core.settings import ActionSettings
from voice_companion.core.settings import RecognitionSettings
from voice_companion.core.settings import Settings
from voice_companion.core.settings import StorageSettings
from voice_companion.core.settings import SynthesisTuning
from voice_companion.services.static_page import StaticPage

SAMPLE_PAGE = {
    "start": "/channel/system-design",
    "routes": {
        "/": {
            "title": "Home",
            "links": [
                {"label": "Learning Paths", "href": "/learning-paths"},
                {"label": "Secret Admin", "href": "/admin"},
            ],
            "buttons": ["Start Learning"],
        },
        "/learning-paths": {"title": "Learning Paths", "headings": ["Learning Paths"]},
        "/channel/system-design": {
            "title": "System Design",
            "headings": ["System Design", "Question 1 of 20"],
            "buttons": [
                "Show Answer",
                {"label": "Next Question", "navigate": "/channel/system-design/2"},
                "Previous Question",
            ],
            "elements": {".question-text": ["How would you design a URL shortener?"]},
            "data": {
                "page_type": "question",
                "question": "How would you design a URL shortener?",
                "tags": ["system-design"],
            },
        },
        "/channel/system-design/2": {
            "title": "System Design",
            "headings": ["System Design", "Question 2 of 20"],
            "buttons": ["Show Answer", "Next Question"],
        },
    },
}


@pytest.fixture
def mock_config(tmp_path):
    """Settings with millisecond timers so timing tests stay fast."""
    return Settings(
        recognition=RecognitionSettings(quiet_period_ms=20, restart_delay_ms=10),
        synthesis_tuning=SynthesisTuning(restop_delay_ms=1),
        actions=ActionSettings(click_dwell_ms=1, scroll_dwell_ms=5, highlight_dwell_ms=5),
        storage=StorageSettings(transcript_dir=tmp_path / "transcripts"),
    )


@pytest.fixture
def sample_page():
    """A fresh in-memory page positioned on a question."""
    return StaticPage.from_dict(SAMPLE_PAGE)


@pytest.fixture
def transcript_dir(tmp_path):
    directory = tmp_path / "transcripts"
    directory.mkdir()
    return directory


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as end-to-end engine scenarios")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
