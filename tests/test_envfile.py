"""Tests for .env rendering and writing."""

import re

from automate_installer.envfile import (
    ANTHROPIC_PLACEHOLDER,
    OPENAI_PLACEHOLDER,
    atomic_write,
    render_env_file,
    write_env_file,
)
from automate_installer.models import SKIP, InstallConfig

UUID_RE = r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}"


def _lines(content):
    return content.splitlines()


class TestRenderEnvFile:

    def test_active_key_and_placeholder(self, install_config, settings):
        lines = _lines(render_env_file(install_config, settings))

        assert lines.count("ANTHROPIC_API_KEY=sk-ant-test") == 1
        assert ANTHROPIC_PLACEHOLDER not in lines
        assert OPENAI_PLACEHOLDER in lines
        assert not any(line.startswith("OPENAI_API_KEY=") for line in lines)

    def test_both_keys_skipped(self, settings):
        config = InstallConfig(install_path=settings.install_path, anthropic_key=SKIP, openai_key=None)
        lines = _lines(render_env_file(config, settings))

        assert ANTHROPIC_PLACEHOLDER in lines
        assert OPENAI_PLACEHOLDER in lines
        assert not any(re.match(r"^[A-Z_]+_API_KEY=", line) and "AUTOMEM" not in line for line in lines)

    def test_both_keys_present(self, settings):
        config = InstallConfig(install_path=settings.install_path, anthropic_key="a", openai_key="o")
        lines = _lines(render_env_file(config, settings))
        assert "ANTHROPIC_API_KEY=a" in lines
        assert "OPENAI_API_KEY=o" in lines

    def test_ports_and_owner(self, install_config, settings):
        lines = _lines(render_env_file(install_config, settings))
        for line in (
            "AUTOHUB_PORT=3001",
            "AUTOCHAT_PORT=3000",
            "AUTOMEM_PORT=8001",
            "FALKORDB_PORT=6379",
            "QDRANT_PORT=6333",
            "AUTOMEM_ENDPOINT=http://localhost:8001",
            "OWNER_NAME=tester",
        ):
            assert line in lines

    def test_automem_key_is_fresh_uuid(self, install_config, settings):
        first = render_env_file(install_config, settings)
        second = render_env_file(install_config, settings)

        key_re = re.compile(rf"^AUTOMEM_API_KEY=({UUID_RE})$", re.MULTILINE)
        first_key = key_re.search(first).group(1)
        second_key = key_re.search(second).group(1)
        assert first_key != second_key

        # Everything else is stable
        assert key_re.sub("", first) == key_re.sub("", second)

    def test_groups_separated_by_blank_lines(self, install_config, settings):
        content = render_env_file(install_config, settings)
        assert content.endswith("\n")
        assert "\n\n\n" not in content
        assert content.count("\n\n") == 5


class TestWriteEnvFile:

    def test_writes_into_install_path(self, install_config, settings):
        install_config.install_path.mkdir(parents=True)
        path = write_env_file(install_config, settings)

        assert path == install_config.install_path / ".env"
        assert "ANTHROPIC_API_KEY=sk-ant-test" in path.read_text()
        assert not (install_config.install_path / ".env.tmp").exists()

    def test_atomic_write_replaces_existing(self, tmp_path):
        target = tmp_path / ".env"
        target.write_text("OLD=1\n")
        atomic_write(target, "NEW=1\n")
        assert target.read_text() == "NEW=1\n"
        assert list(tmp_path.iterdir()) == [target]
