"""Tests for the services bundle and its production wiring."""

import os
import threading
import time
from unittest.mock import patch

from conftest import make_services

from config import Config
from utils import services as services_module
from utils.push_gateway import OneSignalPushGateway
from utils.services import AUDIT_LOGGER_NAME, build_services
from utils.sms_gateway import HttpSmsGateway


class TestBuildServices:
    def test_gateways_follow_configuration(self):
        env = {
            "BOOKING_ONESIGNAL_DEV_APP_ID": "dev-app",
            "BOOKING_ONESIGNAL_DEV_API_KEY": "dev-key",
            "BOOKING_SMS_URL": "https://sms.example.com/send",
            "BOOKING_SES_REGION": "eu-west-1",
            "BOOKING_HTTP_TIMEOUT_SECONDS": "4",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = Config()
        with patch("utils.email_sender.boto3") as boto3:
            services = build_services(cfg)

        assert isinstance(services.push, OneSignalPushGateway)
        assert services.push.app_id == "dev-app"
        assert services.push.timeout == 4.0
        assert isinstance(services.sms, HttpSmsGateway)
        assert services.sms.url == "https://sms.example.com/send"
        boto3.client.assert_called_once_with("ses", region_name="eu-west-1")
        assert services.audit_logger.name == AUDIT_LOGGER_NAME


class TestDispatcherProperty:
    def test_dispatcher_is_built_once_from_config(self):
        services = make_services()

        dispatcher = services.dispatcher

        assert services.dispatcher is dispatcher
        assert dispatcher.push_gateway is services.push
        assert dispatcher.night_start_hour == 22
        assert dispatcher.sms_sender == "+46700000000"


class TestGetServices:
    def test_concurrent_first_calls_build_one_bundle(self):
        bundle = make_services()
        barrier = threading.Barrier(8)
        results = []

        def slow_build():
            time.sleep(0.05)
            return bundle

        def call():
            barrier.wait()
            results.append(services_module.get_services())

        with patch.object(services_module, "_services", None), patch.object(
            services_module, "build_services", side_effect=slow_build
        ) as build:
            threads = [threading.Thread(target=call) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert build.call_count == 1
        assert len(results) == 8
        assert all(result is bundle for result in results)
