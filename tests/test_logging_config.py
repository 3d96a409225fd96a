import logging

from spacegun.logging_config import HealthCheckFilter, LayerFilter, get_cli_logging_config, get_logging_config


def access_record(method, path):
    return logging.LogRecord(
        "uvicorn.access", logging.INFO, __file__, 1,
        '%s - "%s %s HTTP/%s" %d', ("127.0.0.1:5000", method, path, "1.1", 200), None,
    )


def test_health_probes_are_dropped_from_access_log():
    health_filter = HealthCheckFilter()

    assert not health_filter.filter(access_record("GET", "/health"))
    assert not health_filter.filter(access_record("GET", "/health?probe=1"))
    assert health_filter.filter(access_record("GET", "/healthz"))
    assert health_filter.filter(access_record("POST", "/dispatch/jobs.run"))


def test_other_loggers_are_never_filtered():
    record = logging.LogRecord("spacegun.jobs", logging.INFO, __file__, 1, "GET /health", None, None)

    assert HealthCheckFilter().filter(record)


def test_layer_is_attached_to_records():
    record = logging.LogRecord("spacegun.jobs", logging.INFO, __file__, 1, "planned", None, None)

    LayerFilter("server").filter(record)

    assert record.layer == "server"


def test_server_config_levels_and_layer():
    config = get_logging_config("debug", layer="server")

    assert config["loggers"]["spacegun"]["level"] == "DEBUG"
    assert config["loggers"]["kubernetes"]["level"] == "WARNING"
    assert config["filters"]["layer"]["layer"] == "server"
    assert config["handlers"]["spacegun"]["stream"] == "ext://sys.stdout"


def test_cli_config_logs_to_stderr():
    config = get_cli_logging_config()

    assert config["handlers"]["spacegun"]["stream"] == "ext://sys.stderr"
    assert config["handlers"]["default"]["stream"] == "ext://sys.stderr"
    assert config["formatters"]["spacegun"]["format"].startswith("%(levelname)s")
