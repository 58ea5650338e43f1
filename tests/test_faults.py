"""
Fault types and the logging helper.
"""

import logging

import pytest

from docroute.faults import (
    ConfigFault,
    ControllerNotRegisteredFault,
    Fault,
    FaultDomain,
    InvalidMetadataFault,
    RouteConflictFault,
)
from docroute.logging import configure_logging


class TestFaults:

    def test_class_level_code_and_domain(self):
        fault = ControllerNotRegisteredFault("app:Users")
        assert fault.code == "CONTROLLER_NOT_REGISTERED"
        assert fault.domain is FaultDomain.REGISTRY
        assert str(fault) == "[CONTROLLER_NOT_REGISTERED] Controller 'app:Users' has no registered metadata"

    def test_to_dict(self):
        fault = InvalidMetadataFault("bad verb", method="TRACE")
        assert fault.to_dict() == {
            "code": "INVALID_METADATA",
            "message": "bad verb",
            "domain": "registry",
            "metadata": {"method": "TRACE"},
        }

    def test_route_conflict_message(self):
        fault = RouteConflictFault(
            "app:Users",
            [{"method": "GET", "path": "/users", "handlers": ["a", "b"]}],
        )
        assert "GET /users (a vs b)" in fault.message
        assert fault.domain == FaultDomain.ROUTING

    def test_config_fault(self):
        fault = ConfigFault("DOCROUTE_PORT", "x", "expected an integer")
        assert fault.metadata == {"key": "DOCROUTE_PORT", "value": "x"}

    def test_missing_code_rejected(self):
        with pytest.raises(TypeError):
            Fault(message="no code")

    def test_faults_are_exceptions(self):
        with pytest.raises(Fault):
            raise ConfigFault("K", "v", "reason")


class TestLogging:

    def test_configure_is_idempotent(self):
        logger = configure_logging("debug")
        handlers = list(logger.handlers)
        configure_logging(logging.INFO)
        assert logger.handlers == handlers
        assert logger.level == logging.INFO

    def test_unknown_level_falls_back(self):
        assert configure_logging("chatty").level == logging.INFO


def test_domains_are_string_enums():
    assert FaultDomain("routing") is FaultDomain.ROUTING
    assert FaultDomain.CONFIG == "config"
    assert str(FaultDomain.VALIDATION) == "validation"
    assert [d.value for d in FaultDomain] == ["config", "registry", "routing", "validation"]
