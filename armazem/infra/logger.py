# armazem/infra/logger.py
"""
Sistema de logging para transações do armazém.

Este módulo configura e fornece loggers para registrar todas as operações
críticas do sistema, incluindo movimentações do razão, operações no banco
de dados, eventos do sistema e execuções em modo degradado.

Os arquivos de log só são criados no primeiro uso de cada logger.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional


# Flag global para habilitar/desabilitar logging
ENABLE_LOGGING = os.environ.get("ARMAZEM_LOGGING", "0").strip().lower() in {"1", "true", "sim"}
# Flag global para habilitar/desabilitar prints/output
ENABLE_OUTPUT = False

def print_system(*args, **kwargs):
    """Print controlado pelo ENABLE_OUTPUT."""
    if ENABLE_OUTPUT:
        print(*args, **kwargs)

# Configuração base dos loggers
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura um logger específico com arquivo de saída.

    Args:
        name: Nome do logger
        log_file: Caminho do arquivo de log
        level: Nível de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger configurado
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger

# Diretório base para logs
BASE_DIR = Path(__file__).parent.parent
LOGS_DIR = Path(os.environ.get("ARMAZEM_LOGS_DIR", str(BASE_DIR / "logs")))

_LOG_FILES = {
    "transactions": ("armazem.transactions", "transactions.log"),
    "movimentacoes": ("armazem.movimentacoes", "movimentacoes.log"),
    "database": ("armazem.database", "database.log"),
    "system": ("armazem.system", "system.log"),
}

_loggers: Dict[str, logging.Logger] = {}

def get_logger(log_type: str) -> logging.Logger:
    """Retorna (criando no primeiro uso) o logger de um tipo de log."""
    if log_type not in _loggers:
        name, filename = _LOG_FILES[log_type]
        if ENABLE_LOGGING:
            _loggers[log_type] = setup_logger(name, str(LOGS_DIR / filename))
        else:
            # Sem arquivo: o logger ainda propaga para a raiz (WARNING+)
            _loggers[log_type] = logging.getLogger(name)
    return _loggers[log_type]

def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra uma transação completa no log.

    Args:
        operation: Tipo de operação (alocar, mover, confirmar_retirada, etc.)
        data: Dados da transação
        result: Resultado da operação (opcional)
        error: Mensagem de erro (opcional)
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    logger = get_logger("transactions")
    if error:
        logger.error(f"TRANSACTION_FAILED: {operation} - {error} - Data: {data}")
    else:
        logger.info(f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data: {data}")

def log_movimentacao(tipo: str, produto_id: Any, quantidade: Any, sequencia: Any = None, **kwargs) -> None:
    """
    Log específico para entradas gravadas no razão.

    Args:
        tipo: Tipo de movimentação (entry, exit, transfer, adjustment)
        produto_id: Produto movimentado
        quantidade: Quantidade movimentada
        sequencia: Número de sequência atribuído (opcional)
        **kwargs: Dados adicionais
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "tipo": tipo,
        "produto_id": produto_id,
        "quantidade": quantidade,
        "sequencia": sequencia,
        **kwargs
    }
    get_logger("movimentacoes").info(f"MOVIMENTACAO_{str(tipo).upper()}: {log_data}")

def log_database_operation(table: str, operation: str, affected_rows: int = 0, **kwargs) -> None:
    """
    Log específico para operações no banco de dados.

    Args:
        table: Nome da tabela
        operation: Operação SQL (INSERT, UPDATE, DELETE, SELECT)
        affected_rows: Número de linhas afetadas
        **kwargs: Dados adicionais
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "table": table,
        "operation": operation,
        "affected_rows": affected_rows,
        **kwargs
    }
    get_logger("database").info(f"DB_{operation}: {log_data}")

def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """
    Log para eventos do sistema.

    Args:
        event: Descrição do evento
        details: Detalhes adicionais (opcional)
        level: Nível do log (info, warning, error)
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "event": event,
        "details": details or {}
    }
    system_logger = get_logger("system")
    log_method = getattr(system_logger, level.lower(), system_logger.info)
    log_method(f"SYSTEM_EVENT: {event} - {log_data}")

def log_modo_degradado(event: str, details: Dict[str, Any] = None, level: str = "warning") -> None:
    """
    Log de execução sem garantia de atomicidade.

    Sempre emitido (independe de ENABLE_LOGGING): quem opera o sistema
    precisa saber que a regra "uma entrada no razão por mudança de estado"
    foi enfraquecida.
    """
    log_data = {
        "event": event,
        "details": details or {},
        "timestamp": datetime.now().isoformat(),
    }
    system_logger = get_logger("system")
    log_method = getattr(system_logger, level.lower(), system_logger.warning)
    log_method(f"MODO_DEGRADADO: {event} - {log_data}")

def log_file_operation(operation: str, file_path: str, rows_processed: int = 0, **kwargs) -> None:
    """
    Log para operações de arquivo (importação/exportação).

    Args:
        operation: Tipo de operação (import, export)
        file_path: Caminho do arquivo
        rows_processed: Número de linhas processadas
        **kwargs: Dados adicionais
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "operation": operation,
        "file_path": file_path,
        "rows_processed": rows_processed,
        **kwargs
    }
    get_logger("system").info(f"FILE_{operation.upper()}: {log_data}")

def get_log_summary(log_type: str = "transactions", lines: int = 100) -> Optional[str]:
    """
    Obtém um resumo dos logs recentes.

    Args:
        log_type: Tipo de log (transactions, movimentacoes, database, system)
        lines: Número de linhas a retornar

    Returns:
        Conteúdo do log como string
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return None

    entry = _LOG_FILES.get(log_type)
    log_file = LOGS_DIR / entry[1] if entry else None
    if not log_file or not log_file.exists():
        return f"Log {log_type} não encontrado."

    try:
        with open(log_file, 'r', encoding='utf-8') as f:
            all_lines = f.readlines()
            recent_lines = all_lines[-lines:] if len(all_lines) > lines else all_lines
            return ''.join(recent_lines)
    except OSError as e:
        return f"Erro ao ler log {log_type}: {str(e)}"
