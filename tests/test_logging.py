import logging

from bidcurves import CurveSmoothingConfig, CurveSmoothingPipeline
from bidcurves.pipeline import logger as pipeline_logger
from bidcurves.utils.logging import get_logger, set_log_level


def test_handler_is_added_once():
    first = get_logger('bidcurves.tests.logging')
    second = get_logger('bidcurves.tests.logging')
    assert first is second
    assert len(first.handlers) == 1
    assert not first.propagate


def test_set_log_level_applies_to_package_loggers():
    logger = get_logger('bidcurves.tests.levels')
    other = logging.getLogger('othertool.levels')
    other_level = other.level
    try:
        set_log_level(logging.DEBUG)
        assert logger.level == logging.DEBUG
        assert other.level == other_level
    finally:
        set_log_level(logging.INFO)


def test_pipeline_applies_configured_log_level():
    try:
        CurveSmoothingPipeline({'log_level': logging.WARNING})
        assert pipeline_logger.level == logging.WARNING
    finally:
        set_log_level(logging.INFO)


def test_log_level_does_not_change_the_cache_key():
    quiet = CurveSmoothingConfig(log_level=logging.DEBUG)
    assert quiet.get_hash_attributes() == CurveSmoothingConfig().get_hash_attributes()
