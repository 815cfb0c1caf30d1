"""Tests for the server entrypoint."""

from unittest.mock import patch

from fastapi import FastAPI

from protocolpdf import main


@patch("protocolpdf.main.uvicorn.run")
def test_main_serves_configured_app(mock_run, settings):
    settings.port = 9001
    settings.forwarded_allow_ips = "10.0.0.0/8"

    main.main()

    app = mock_run.call_args.args[0]
    kwargs = mock_run.call_args.kwargs
    assert isinstance(app, FastAPI)
    assert kwargs["port"] == 9001
    assert kwargs["log_level"] == "info"
    assert kwargs["log_config"] is None
    assert kwargs["proxy_headers"] is True
    assert kwargs["forwarded_allow_ips"] == "10.0.0.0/8"
