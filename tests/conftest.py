#!/usr/bin/env python3
"""
共通テストフィクスチャ

テスト全体で使用する共通のフィクスチャとヘルパーを定義します。
"""

import logging
import tempfile
import unittest.mock
from pathlib import Path

import pytest

# === 定数 ===
OWNER_ID = 1


# === 環境モック ===
@pytest.fixture(scope="session", autouse=True)
def env_mock():
    """テスト環境用の環境変数モック"""
    with unittest.mock.patch.dict(
        "os.environ",
        {
            "TEST": "true",
            "NO_COLORED_LOGS": "true",
        },
    ) as fixture:
        yield fixture


# === テスト用設定 ===
@pytest.fixture
def sample_config():
    """サンプル設定を返す"""
    return {
        "data": {
            "cache": "./data",
        },
        "session": {
            "connect_timeout": 5,
            "command_timeout": 10,
            "log_lines": 50,
            "strict_host_key": False,
        },
        "webhook": {
            "secret": "test-webhook-secret",
            "require_signature": False,
        },
        "collector": {
            "enabled": False,
            "interval_sec": 60,
            "max_workers": 2,
        },
    }


@pytest.fixture
def sample_secret():
    """サンプルシークレットを返す"""
    return {
        "ssh_auth": {
            "web-01": {
                "username": "monitor",
                "password": "testpassword",
            },
        },
    }


# === データベースフィクスチャ ===
@pytest.fixture
def temp_db_path():
    """一時データベースパスを返す"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def temp_data_dir():
    """一時データディレクトリを返す"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def repository(temp_db_path):
    """スキーマ初期化済みの SqliteRepository"""
    from host_monitor.spec.repository import SqliteRepository

    repo = SqliteRepository(temp_db_path)
    repo.init_db()
    return repo


@pytest.fixture
def api_key(repository):
    """OWNER_ID が所有する有効な API キー"""
    import host_monitor.spec.models as models

    return repository.create_api_key(
        models.ApiKey(owner_id=OWNER_ID, name="test", key="sk_" + "0" * 32)
    )


@pytest.fixture
def sample_host(repository):
    """OWNER_ID が所有するホスト"""
    import host_monitor.spec.models as models

    return repository.create_host(
        models.Host(
            name="web-01",
            hostname="web-01.example.com",
            ip_address="192.168.1.10",
            owner_id=OWNER_ID,
            status="online",
        )
    )


# === Flask テストクライアント ===
@pytest.fixture
def flask_app(repository):
    """Flask テストアプリケーション"""
    from host_monitor.cli.webui import create_app

    # バックグラウンドワーカーを起動しないようにモック
    with unittest.mock.patch("atexit.register"):
        app = create_app(repository=repository)
        app.config["TESTING"] = True
        yield app


@pytest.fixture
def client(flask_app):
    """Flask テストクライアント"""
    return flask_app.test_client()


@pytest.fixture
def owner_headers():
    return {"X-User-Id": str(OWNER_ID)}


# === SSH モック ===
def make_channel(output: str | bytes):
    """exec_command の stdout として使えるモックを作成"""
    stdout = unittest.mock.MagicMock()
    stdout.read.return_value = output.encode() if isinstance(output, str) else output
    return stdout


def make_ssh_client(outputs: dict[str, str]):
    """コマンド文字列ごとに出力を返す paramiko.SSHClient のモックを作成

    outputs に無いコマンドは空文字列を返します。
    """
    client = unittest.mock.MagicMock()

    def exec_command(command, timeout=None):  # noqa: ARG001
        return (unittest.mock.MagicMock(), make_channel(outputs.get(command, "")), unittest.mock.MagicMock())

    client.exec_command.side_effect = exec_command
    return client


@pytest.fixture
def ssh_client_factory():
    """make_ssh_client を返す"""
    return make_ssh_client


# === データベースパス管理 ===
@pytest.fixture(autouse=True)
def reset_db_paths():
    """各テスト後に db_config のパスをリセット"""
    from host_monitor.spec import db_config

    yield
    db_config.reset_all_paths()


@pytest.fixture(autouse=True)
def reset_shutdown_hooks():
    """create_app が登録した終了処理を各テスト後に破棄"""
    yield
    from host_monitor.cli import webui

    webui._shutdown_hooks.clear()
    webui._term_registered = False


# === ロギング設定 ===
logging.getLogger("werkzeug").setLevel(logging.WARNING)
