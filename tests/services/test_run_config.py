import pytest

from pgmigrator.errors import ConfigurationError
from pgmigrator.models import StageArtifacts
from pgmigrator.services.commands import PostgresCommandBuilder
from pgmigrator.services.run_config import RunConfigResolver, parse_flag, resolve_jobs


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def warning(self, message, *args):
        self.warnings.append(message % args)


def _values(tmp_path, **overrides):
    values = {
        "source_host": "192.168.200.14",
        "source_user": "migrator",
        "target_host": "192.168.200.7",
        "target_user": "migrator",
        "databases": ["orders"],
        "work_dir": str(tmp_path),
    }
    values.update(overrides)
    return values


def test_resolve_jobs_uses_override():
    assert resolve_jobs(4, cpu_count=16) == 4


def test_resolve_jobs_uses_half_of_cores():
    assert resolve_jobs(None, cpu_count=16) == 8
    assert resolve_jobs(None, cpu_count=3) == 1
    assert resolve_jobs(None, cpu_count=1) == 1


def test_resolve_jobs_rejects_non_positive_override():
    with pytest.raises(ConfigurationError, match="at least 1"):
        resolve_jobs(0)


def test_resolve_builds_config_with_defaults_and_env_secrets(tmp_path):
    resolver = RunConfigResolver(logger=DummyLogger())

    config = resolver.resolve(
        _values(tmp_path, jobs=2),
        {"PG_SOURCE_PASSWORD": "src-secret", "PG_TARGET_PASSWORD": "tgt-secret"},
    )

    assert config.source.port == 5432
    assert config.source.secret == "src-secret"
    assert config.target.env_overlay() == {"PGPASSWORD": "tgt-secret"}
    assert config.databases == ("orders",)
    assert config.jobs == 2
    assert config.import_roles is True
    assert config.drop_existing is True
    assert config.on_database_failure == "continue"
    assert config.fail_on_database_error is False
    assert config.admin_database == "postgres"
    assert "src-secret" not in repr(config)


def test_resolve_without_secret_leaves_overlay_empty(tmp_path):
    config = RunConfigResolver(logger=DummyLogger()).resolve(_values(tmp_path), {})

    assert config.source.env_overlay() == {}


def test_resolve_requires_connection_settings(tmp_path):
    resolver = RunConfigResolver(logger=DummyLogger())

    with pytest.raises(ConfigurationError, match="--target-host"):
        resolver.resolve(_values(tmp_path, target_host=None), {})


def test_resolve_requires_databases(tmp_path):
    resolver = RunConfigResolver(logger=DummyLogger())

    with pytest.raises(ConfigurationError, match="No databases to migrate"):
        resolver.resolve(_values(tmp_path, databases=[]), {})


@pytest.mark.parametrize("name", ["template0", "template1", "-Fp", "a/b", "", "  "])
def test_resolve_rejects_invalid_database_names(tmp_path, name):
    resolver = RunConfigResolver(logger=DummyLogger())

    with pytest.raises(ConfigurationError):
        resolver.resolve(_values(tmp_path, databases=[name]), {})


def test_resolve_rejects_duplicate_databases(tmp_path):
    resolver = RunConfigResolver(logger=DummyLogger())

    with pytest.raises(ConfigurationError, match="more than once"):
        resolver.resolve(_values(tmp_path, databases=["orders", "orders"]), {})


def test_resolve_warns_for_admin_database(tmp_path):
    logger = DummyLogger()

    RunConfigResolver(logger=logger).resolve(_values(tmp_path, databases=["postgres"]), {})

    assert any("administrative database" in message for message in logger.warnings)


def test_resolve_rejects_unknown_failure_policy(tmp_path):
    resolver = RunConfigResolver(logger=DummyLogger())

    with pytest.raises(ConfigurationError, match="on_database_failure"):
        resolver.resolve(_values(tmp_path, on_database_failure="retry"), {})


def test_resolve_rejects_invalid_port(tmp_path):
    resolver = RunConfigResolver(logger=DummyLogger())

    with pytest.raises(ConfigurationError, match="Invalid source port"):
        resolver.resolve(_values(tmp_path, source_port=70000), {})


def test_connection_string_lookalike_name_is_dumped_as_plain_dbname(tmp_path):
    name = "host=attacker.example dbname=orders"
    config = RunConfigResolver(logger=DummyLogger()).resolve(
        _values(tmp_path, databases=[name, "sales=2024"]),
        {"PG_SOURCE_PASSWORD": "pw"},
    )
    builder = PostgresCommandBuilder(config)
    artifacts = StageArtifacts.for_database(config.work_dir, name, "20240101_000000")

    dump = builder.dump_database(artifacts)

    assert config.databases == (name, "sales=2024")
    assert dump.args[-1] == "dbname='host=attacker.example dbname=orders'"
    assert name not in dump.args
    assert dump.env == {"PGPASSWORD": "pw"}


@pytest.mark.parametrize("key", ["import_roles", "drop_existing", "fail_on_database_error"])
@pytest.mark.parametrize("value", ["false", "no", 0, 1])
def test_resolve_rejects_non_boolean_flags(tmp_path, key, value):
    resolver = RunConfigResolver(logger=DummyLogger())

    with pytest.raises(ConfigurationError, match=key):
        resolver.resolve(_values(tmp_path, **{key: value}), {})


def test_resolve_keeps_boolean_flags(tmp_path):
    config = RunConfigResolver(logger=DummyLogger()).resolve(
        _values(tmp_path, import_roles=False, drop_existing=False, fail_on_database_error=True),
        {},
    )

    assert config.import_roles is False
    assert config.drop_existing is False
    assert config.fail_on_database_error is True


def test_parse_flag_falls_back_to_default():
    assert parse_flag(None, "dry_run", True) is True
    assert parse_flag(False, "dry_run", True) is False
