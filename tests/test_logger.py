import logging

import pytest

from armazem.infra import logger
from armazem.infra.logger import (
    get_log_summary,
    log_database_operation,
    log_file_operation,
    log_modo_degradado,
    log_movimentacao,
    log_system_event,
    log_transaction,
)


@pytest.fixture
def logs_em_arquivo(tmp_path, monkeypatch):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", True)
    monkeypatch.setattr(logger, "LOGS_DIR", tmp_path)
    monkeypatch.setattr(logger, "_loggers", {})
    yield tmp_path
    for nome, _ in logger._LOG_FILES.values():
        lg = logging.getLogger(nome)
        for handler in list(lg.handlers):
            lg.removeHandler(handler)
            handler.close()
        lg.setLevel(logging.NOTSET)


def test_um_arquivo_por_assunto(logs_em_arquivo):
    log_system_event("teste_inicio", {"teste": "logger"})
    log_movimentacao("entry", 1, 10, 1, operacao="alocar", destino=3)
    log_database_operation("produto", "INSERT", 1, produto_id=1)
    log_file_operation("import", "produtos.xlsx", rows_processed=5)
    log_transaction("alocar", {"args": (1, 3)}, result={"id": 1})
    log_transaction("mover", {"args": (1, 4)}, error="CONFLICT: ocupada")

    arquivos = sorted(p.name for p in logs_em_arquivo.iterdir())
    assert arquivos == ["database.log", "movimentacoes.log", "system.log", "transactions.log"]

    assert "MOVIMENTACAO_ENTRY" in get_log_summary("movimentacoes")
    transacoes = get_log_summary("transactions")
    assert "TRANSACTION_SUCCESS: alocar" in transacoes
    assert "TRANSACTION_FAILED: mover - CONFLICT: ocupada" in transacoes
    sistema = get_log_summary("system", lines=1)
    assert "FILE_IMPORT" in sistema and "teste_inicio" not in sistema
    assert get_log_summary("inexistente") == "Log inexistente não encontrado."


def test_desligado_nao_cria_arquivos(tmp_path, monkeypatch):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", False)
    monkeypatch.setattr(logger, "LOGS_DIR", tmp_path)
    monkeypatch.setattr(logger, "_loggers", {})

    log_system_event("nada", {})
    log_transaction("alocar", {}, result=1)
    assert get_log_summary("system") is None
    assert list(tmp_path.iterdir()) == []


def test_modo_degradado_sempre_logado(tmp_path, monkeypatch, caplog):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", False)
    monkeypatch.setattr(logger, "_loggers", {})
    caplog.set_level(logging.WARNING, logger="armazem.system")

    log_modo_degradado("operacao_sem_atomicidade", {"operacao": "mover"})
    assert "MODO_DEGRADADO: operacao_sem_atomicidade" in caplog.text
