import pytest

from conda_ca_sync.server import hooks_main, monitor_main, replace_main

from conftest import CORPORATE_BUNDLE, make_env


@pytest.fixture
def environ(monkeypatch, tmp_path, source_bundle, envs_root):
    monkeypatch.delenv("CONDA_PREFIX", raising=False)
    monkeypatch.setenv("CONDA_CA_TARGET_BUNDLE", str(source_bundle))
    monkeypatch.setenv("CONDA_CA_ENVS_ROOT", str(envs_root))
    monkeypatch.setenv("CONDA_CA_LOG_SINK", str(tmp_path / "logs" / "monitor.log"))
    monkeypatch.setenv("CONDA_CA_USE_SUDO", "false")
    return monkeypatch


def test_replace_main_prints_summary(environ, envs_root, capsys):
    make_env(envs_root, "py311")
    make_env(envs_root, "empty", with_bundle=False)

    with pytest.raises(SystemExit) as exc_info:
        replace_main()

    assert exc_info.value.code == 0
    out = capsys.readouterr().out
    assert "cacert.pem file replaced in the conda py311 env" in out
    assert "replaced in 1 of 2 conda environments" in out
    assert (envs_root / "py311" / "ssl" / "cacert.pem").read_text() == CORPORATE_BUNDLE


def test_monitor_main_exits_when_root_missing(environ, tmp_path, capsys):
    """Test watch precondition failure exits non-zero without stdout output"""
    environ.setenv("CONDA_CA_ENVS_ROOT", str(tmp_path / "missing"))

    with pytest.raises(SystemExit) as exc_info:
        monitor_main()

    assert exc_info.value.code == 1
    assert capsys.readouterr().out == ""
    assert not (tmp_path / "logs").exists()


def test_monitor_main_exits_when_sink_unusable(environ, tmp_path):
    """Test an unopenable outcome log exits non-zero instead of crashing"""
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    environ.setenv("CONDA_CA_LOG_SINK", str(blocker / "monitor.log"))

    with pytest.raises(SystemExit) as exc_info:
        monitor_main()

    assert exc_info.value.code == 1


def test_monitor_main_rejects_bad_config(environ):
    environ.setenv("CONDA_CA_WAIT_SECONDS", "never")

    with pytest.raises(SystemExit) as exc_info:
        monitor_main()

    assert exc_info.value.code == 1


def test_hooks_main_installs_scripts(environ, envs_root, tmp_path, capsys):
    env = make_env(envs_root, "analytics", with_bundle=False)
    script = tmp_path / "on_activate.sh"
    script.write_text("export REQUESTS_CA_BUNDLE=$CONDA_PREFIX/ssl/cacert.pem\n")
    environ.setenv("CONDA_CA_HOOK_ENV", str(env))
    environ.setenv("CONDA_CA_ACTIVATION_SCRIPT", str(script))

    with pytest.raises(SystemExit) as exc_info:
        hooks_main()

    assert exc_info.value.code == 0
    assert (env / "etc" / "conda" / "activate.d" / "on_activate.sh").exists()
    assert "re-activate the env analytics" in capsys.readouterr().out
