import logging

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider

from services.common import ServiceSettings, build_app, configure_logging
from services.common.logging import TraceContextFilter
from services.common.tracing import _INSTRUMENTED_APPS, configure_tracing


@pytest.mark.usefixtures("caplog")
class TestTracingInstrumentation:
    def test_tracing_sets_provider_once(self, caplog: pytest.LogCaptureFixture) -> None:
        settings = ServiceSettings(
            enable_tracing=True,
            enable_metrics=False,
            app_name="Tracing Test Service",
        )
        configure_logging(settings)
        caplog.set_level(logging.WARNING)
        before = len(_INSTRUMENTED_APPS)
        app = build_app(settings)
        after_first = len(_INSTRUMENTED_APPS)
        assert after_first == before + 1
        configure_tracing(app, settings)
        after_second = len(_INSTRUMENTED_APPS)
        assert after_second == after_first
        provider = trace.get_tracer_provider()
        assert isinstance(provider, TracerProvider)

    def test_tracing_disabled_leaves_app_uninstrumented(self) -> None:
        settings = ServiceSettings(enable_tracing=False, enable_metrics=False)
        before = len(_INSTRUMENTED_APPS)
        build_app(settings)
        assert len(_INSTRUMENTED_APPS) == before

    def test_logging_injects_trace_identifiers(self, caplog: pytest.LogCaptureFixture) -> None:
        settings = ServiceSettings(
            enable_tracing=True,
            enable_metrics=False,
            app_name="Logging Trace Test",
        )
        configure_logging(settings)
        build_app(settings)
        caplog.clear()
        tracer = trace.get_tracer(__name__)
        logger = logging.getLogger("trace-test")
        with caplog.at_level(logging.INFO):
            logger.info("outside span")
            outside_record = next(
                record for record in caplog.records if record.message == "outside span"
            )
            assert getattr(outside_record, "trace_id", "-") == "-"
            assert getattr(outside_record, "span_id", "-") == "-"
            with tracer.start_as_current_span("span"):
                logger.info("inside span")
        inside_record = next(record for record in caplog.records if record.message == "inside span")
        trace_id = getattr(inside_record, "trace_id", "-")
        span_id = getattr(inside_record, "span_id", "-")
        assert trace_id != "-"
        assert span_id != "-"
        assert len(trace_id) == 32
        assert len(span_id) == 16
        assert getattr(inside_record, "service", None) == "Logging Trace Test"


def test_configure_logging_reuses_filter_and_updates_service_name() -> None:
    configure_logging(ServiceSettings(app_name="first-name", enable_metrics=False))
    configure_logging(ServiceSettings(app_name="second-name", enable_metrics=False))

    root_logger = logging.getLogger()
    filters = [f for f in root_logger.filters if isinstance(f, TraceContextFilter)]
    assert len(filters) == 1
    assert filters[0].service_name == "second-name"

    record = logging.LogRecord("payments", logging.INFO, __file__, 1, "hello", None, None)
    assert filters[0].filter(record) is True
    assert record.service == "second-name"
    assert record.trace_id == "-"
    assert record.span_id == "-"
