"""
Configuration settings for the scheduling and risk engine.
Load configuration from environment variables or a project-level .env file.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_file = Path(__file__).parent.parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)


def _int_list(raw: str) -> list[int]:
    return [int(part) for part in raw.split(',') if part.strip()]


class Settings:
    """Application settings loaded from environment variables."""

    # Project paths
    PROJECT_ROOT = Path(__file__).parent.parent.parent
    OUTPUT_DIR = Path(os.getenv('GANTT_OUTPUT_DIR', str(PROJECT_ROOT / 'output')))

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_DIR = Path(os.getenv('LOG_DIR', str(PROJECT_ROOT / 'logs')))
    LOG_TO_FILE = os.getenv('LOG_TO_FILE', 'false').lower() in ('1', 'true', 'yes')

    # ============================================================================
    # Scheduling
    # ============================================================================
    DEFAULT_CALENDAR = os.getenv('DEFAULT_CALENDAR', '5')
    MAX_BASELINES = int(os.getenv('MAX_BASELINES', '11'))

    # ============================================================================
    # Monte Carlo
    # ============================================================================
    DEFAULT_ITERATIONS = int(os.getenv('DEFAULT_ITERATIONS', '1000'))
    DEFAULT_CONFIDENCE_LEVELS = _int_list(
        os.getenv('DEFAULT_CONFIDENCE_LEVELS', '10,25,50,75,80,90')
    )
    HISTOGRAM_BINS = int(os.getenv('HISTOGRAM_BINS', '20'))
    PROGRESS_BATCH_SIZE = int(os.getenv('PROGRESS_BATCH_SIZE', '50'))
    MAX_WORKERS = int(os.getenv('MAX_WORKERS', '1'))

    @classmethod
    def validate_required_settings(cls) -> list[str]:
        """
        Validate that configured values are usable.
        Returns list of problems found.
        """
        problems = []
        if cls.DEFAULT_ITERATIONS < 1:
            problems.append('DEFAULT_ITERATIONS must be >= 1')
        if cls.HISTOGRAM_BINS < 1:
            problems.append('HISTOGRAM_BINS must be >= 1')
        if cls.PROGRESS_BATCH_SIZE < 1:
            problems.append('PROGRESS_BATCH_SIZE must be >= 1')
        if not 1 <= cls.MAX_BASELINES <= 11:
            problems.append('MAX_BASELINES must be between 1 and 11')
        if any(not 0 <= p <= 100 for p in cls.DEFAULT_CONFIDENCE_LEVELS):
            problems.append('DEFAULT_CONFIDENCE_LEVELS must be within 0..100')
        return problems


settings = Settings()
