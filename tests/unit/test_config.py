"""Unit tests for settings and logging setup."""

import logging
import logging.handlers
from datetime import date

import pytest

from gantt_cpm.config.settings import Settings, settings
from gantt_cpm.cpm.engine import schedule
from gantt_cpm.cpm.models import Project
from gantt_cpm.data_loader import load_project_csv
from gantt_cpm.utils.logger import configure_logging
from schemas.project import ProjectFile
from schemas.risk import SimulationParams


class TestSettings:
    """Environment-backed defaults."""

    def test_defaults_are_valid(self):
        assert settings.validate_required_settings() == []

    def test_bad_values_reported(self, monkeypatch):
        monkeypatch.setattr(Settings, 'HISTOGRAM_BINS', 0)
        monkeypatch.setattr(Settings, 'DEFAULT_CONFIDENCE_LEVELS', [50, 120])
        problems = Settings.validate_required_settings()
        assert 'HISTOGRAM_BINS must be >= 1' in problems
        assert 'DEFAULT_CONFIDENCE_LEVELS must be within 0..100' in problems


class TestConfigureLogging:
    """Logger handlers."""

    @pytest.fixture
    def logger_name(self):
        name = 'gantt_cpm_test_logger'
        yield name
        logging.getLogger(name).handlers.clear()

    def test_console_only(self, logger_name):
        logger = configure_logging(logger_name, level='DEBUG', log_to_file=False)
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_no_duplicate_handlers(self, logger_name):
        configure_logging(logger_name, log_to_file=False)
        logger = configure_logging(logger_name, log_to_file=False)
        assert len(logger.handlers) == 1

    def test_file_handler(self, logger_name, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, 'LOG_DIR', tmp_path)
        logger = configure_logging(logger_name, log_to_file=True)
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers)
        assert (tmp_path / f'{logger_name}.log').exists()


class TestSettingsDrivenDefaults:
    """Models pick their defaults from the settings when they are built."""

    def test_simulation_params(self, monkeypatch):
        monkeypatch.setattr(settings, 'DEFAULT_ITERATIONS', 7)
        monkeypatch.setattr(settings, 'HISTOGRAM_BINS', 3)
        monkeypatch.setattr(settings, 'DEFAULT_CONFIDENCE_LEVELS', [50, 95])
        monkeypatch.setattr(settings, 'PROGRESS_BATCH_SIZE', 5)
        monkeypatch.setattr(settings, 'MAX_WORKERS', 2)
        params = SimulationParams()
        assert params.iterations == 7
        assert params.histogram_bins == 3
        assert params.confidence_levels == [50, 95]
        assert params.batch_size == 5
        assert params.workers == 2

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setattr(settings, 'DEFAULT_ITERATIONS', 7)
        assert SimulationParams(iterations=40).iterations == 40

    def test_default_calendar(self, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, 'DEFAULT_CALENDAR', '6')
        assert Project(start=date(2025, 3, 3)).default_calendar_id == '6'
        assert ProjectFile.model_validate({'projStart': '2025-03-03'}).default_calendar == '6'

        path = tmp_path / 'activities.csv'
        path.write_text('ID,Name,Duration\nA,Dig,6\n', encoding='utf-8')
        network, calendars, project = load_project_csv(path, date(2025, 3, 3))
        assert project.default_calendar_id == '6'
        result = schedule(network, calendars, project)
        # six working days Monday to Saturday
        assert result.activities['A'].early_finish == date(2025, 3, 10)
