"""
Tests for console settings.
"""

import pytest
from pydantic import ValidationError

from mqconsole import config
from mqconsole.config import (
    ConsoleSettings,
    KafkaInstance,
    RabbitMQInstance,
    ServiceBusInstance,
    servicebus_instances_from_env,
)
from mqconsole.schemas import BackendFamily


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep the host environment and any .env in the working directory out of settings."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "SERVICEBUS_INSTANCES",
        "RABBITMQ_INSTANCES",
        "KAFKA_INSTANCES",
        "SERVICEBUS_CONNECTION_STRING_MANAGE",
        "SERVICEBUS_NAME",
        "API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    for index in range(1, 6):
        monkeypatch.delenv(f"SERVICEBUS_{index}_NAME", raising=False)
        monkeypatch.delenv(f"SERVICEBUS_{index}_CONNECTION_STRING", raising=False)
    yield
    config.reset_settings()


class TestNumberedServiceBusEnv:
    """SERVICEBUS_{i}_NAME / SERVICEBUS_{i}_CONNECTION_STRING."""

    def test_reads_until_first_gap(self):
        environ = {
            "SERVICEBUS_1_NAME": "prod",
            "SERVICEBUS_1_CONNECTION_STRING": "Endpoint=sb://prod/",
            "SERVICEBUS_2_NAME": "staging",
            "SERVICEBUS_2_CONNECTION_STRING": "Endpoint=sb://staging/",
            "SERVICEBUS_4_NAME": "orphan",
            "SERVICEBUS_4_CONNECTION_STRING": "Endpoint=sb://orphan/",
        }

        found = servicebus_instances_from_env(environ)

        assert [item["name"] for item in found] == ["prod", "staging"]

    def test_incomplete_pair_stops_scan(self):
        environ = {"SERVICEBUS_1_NAME": "prod"}

        assert servicebus_instances_from_env(environ) == []

    def test_legacy_single_namespace_comes_first(self):
        environ = {
            "SERVICEBUS_CONNECTION_STRING_MANAGE": "Endpoint=sb://legacy/",
            "SERVICEBUS_NAME": "legacy",
            "SERVICEBUS_1_NAME": "prod",
            "SERVICEBUS_1_CONNECTION_STRING": "Endpoint=sb://prod/",
        }

        found = servicebus_instances_from_env(environ)

        assert found[0] == {"name": "legacy", "connection_string": "Endpoint=sb://legacy/"}
        assert found[1]["name"] == "prod"

    def test_legacy_default_name(self):
        found = servicebus_instances_from_env({"SERVICEBUS_CONNECTION_STRING_MANAGE": "Endpoint=sb://x/"})

        assert found[0]["name"] == "default"

    def test_settings_fold_numbered_env(self, monkeypatch):
        monkeypatch.setenv("SERVICEBUS_1_NAME", "prod")
        monkeypatch.setenv("SERVICEBUS_1_CONNECTION_STRING", "Endpoint=sb://prod/")

        settings = ConsoleSettings()

        assert [i.name for i in settings.servicebus_instances] == ["prod"]

    def test_settings_read_numbered_vars_from_dotenv(self, tmp_path):
        (tmp_path / ".env").write_text(
            "SERVICEBUS_1_NAME=prod\n"
            "SERVICEBUS_1_CONNECTION_STRING=Endpoint=sb://prod/\n"
            "SERVICEBUS_2_NAME=staging\n"
            "SERVICEBUS_2_CONNECTION_STRING=Endpoint=sb://staging/\n"
        )

        settings = ConsoleSettings()

        assert [i.name for i in settings.servicebus_instances] == ["prod", "staging"]
        assert settings.servicebus_instances[0].connection_string == "Endpoint=sb://prod/"

    def test_process_env_overrides_dotenv(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text(
            "SERVICEBUS_1_NAME=from-file\n"
            "SERVICEBUS_1_CONNECTION_STRING=Endpoint=sb://file/\n"
        )
        monkeypatch.setenv("SERVICEBUS_1_NAME", "from-shell")

        settings = ConsoleSettings()

        assert settings.servicebus_instances[0].name == "from-shell"
        assert settings.servicebus_instances[0].connection_string == "Endpoint=sb://file/"

    def test_dotenv_disabled(self, tmp_path):
        (tmp_path / ".env").write_text(
            "SERVICEBUS_1_NAME=prod\n"
            "SERVICEBUS_1_CONNECTION_STRING=Endpoint=sb://prod/\n"
        )

        settings = ConsoleSettings(_env_file=None)

        assert settings.servicebus_instances == []

    def test_explicit_instances_ignore_numbered_env(self, monkeypatch):
        monkeypatch.setenv("SERVICEBUS_1_NAME", "ambient")
        monkeypatch.setenv("SERVICEBUS_1_CONNECTION_STRING", "Endpoint=sb://ambient/")

        settings = ConsoleSettings(
            servicebus_instances=[{"name": "prod", "connection_string": "Endpoint=sb://prod/"}],
        )

        assert [i.name for i in settings.servicebus_instances] == ["prod"]

    def test_json_env_takes_precedence_over_numbered(self, monkeypatch):
        monkeypatch.setenv("SERVICEBUS_1_NAME", "ambient")
        monkeypatch.setenv("SERVICEBUS_1_CONNECTION_STRING", "Endpoint=sb://ambient/")
        monkeypatch.setenv(
            "SERVICEBUS_INSTANCES",
            '[{"name": "prod", "connection_string": "Endpoint=sb://prod/"}]',
        )

        settings = ConsoleSettings()

        assert [i.name for i in settings.servicebus_instances] == ["prod"]

    def test_numbered_env_leaves_other_families_alone(self, monkeypatch):
        monkeypatch.setenv("SERVICEBUS_1_NAME", "prod")
        monkeypatch.setenv("SERVICEBUS_1_CONNECTION_STRING", "Endpoint=sb://prod/")

        settings = ConsoleSettings(kafka_instances=[{"name": "local"}])

        assert [i.name for i in settings.servicebus_instances] == ["prod"]
        assert [i.name for i in settings.kafka_instances] == ["local"]


class TestConsoleSettings:
    """Loading and validation."""

    def test_defaults(self):
        settings = ConsoleSettings()

        assert settings.listing_warn_threshold == 5000
        assert settings.drain_batch_size == 100
        assert settings.drain_max_wait_seconds == 2.0
        assert settings.api_key is None

    def test_json_env(self, monkeypatch):
        monkeypatch.setenv(
            "KAFKA_INSTANCES",
            '[{"name": "local", "bootstrap_servers": "kafka:9092"}]',
        )

        settings = ConsoleSettings()

        assert settings.kafka_instances == [KafkaInstance(name="local", bootstrap_servers="kafka:9092")]

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate kafka instance"):
            ConsoleSettings(kafka_instances=[
                {"name": "local", "bootstrap_servers": "a:9092"},
                {"name": "local", "bootstrap_servers": "b:9092"},
            ])

    def test_same_name_across_families_allowed(self):
        settings = ConsoleSettings(
            kafka_instances=[{"name": "local"}],
            rabbitmq_instances=[{"name": "local"}],
        )

        by_family = settings.instances_by_family()
        assert by_family[BackendFamily.KAFKA][0].name == "local"
        assert by_family[BackendFamily.RABBITMQ][0].name == "local"

    def test_settings_are_frozen(self):
        settings = ConsoleSettings()

        with pytest.raises(ValidationError):
            settings.api_key = "changed"

    def test_no_instances_warns(self, caplog):
        with caplog.at_level("WARNING", logger="mqconsole.config"):
            ConsoleSettings()

        assert "No backend instances configured" in caplog.text

    def test_connection_string_hidden_from_repr(self):
        instance = ServiceBusInstance(name="prod", connection_string="SharedAccessKey=secret")

        assert "secret" not in repr(instance)

    def test_configure_and_reset(self):
        configured = config.configure(kafka_instances=[{"name": "local"}])

        assert config.get_settings() is configured

        config.reset_settings()
        assert config.get_settings() is not configured


class TestRabbitMQInstance:
    """Management URL derivation."""

    def test_derived_from_amqp_url(self):
        instance = RabbitMQInstance(name="local", url="amqp://admin:pw@rabbit:5672/")

        assert instance.resolved_management_url() == "http://rabbit:15672"
        assert instance.credentials() == ("admin", "pw")

    def test_amqps_uses_https(self):
        instance = RabbitMQInstance(name="cloud", url="amqps://u:p@broker.example.com:5671/")

        assert instance.resolved_management_url() == "https://broker.example.com:15672"

    def test_explicit_management_url(self):
        instance = RabbitMQInstance(name="local", management_url="http://mgmt:8080/")

        assert instance.resolved_management_url() == "http://mgmt:8080"

    def test_guest_credentials_by_default(self):
        instance = RabbitMQInstance(name="local", url="amqp://rabbit/")

        assert instance.credentials() == ("guest", "guest")


class TestKafkaInstance:
    """librdkafka configuration."""

    def test_plaintext(self):
        instance = KafkaInstance(name="local", bootstrap_servers="kafka:9092")

        assert instance.client_config() == {
            "bootstrap.servers": "kafka:9092",
            "client.id": "mqconsole",
        }

    def test_sasl(self):
        instance = KafkaInstance(
            name="cloud",
            bootstrap_servers="broker:9093",
            security_protocol="SASL_SSL",
            sasl_mechanism="PLAIN",
            sasl_username="user",
            sasl_password="secret",
        )

        client_config = instance.client_config()

        assert client_config["security.protocol"] == "SASL_SSL"
        assert client_config["sasl.mechanism"] == "PLAIN"
        assert client_config["sasl.username"] == "user"
        assert client_config["sasl.password"] == "secret"
