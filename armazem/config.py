# armazem/config.py
"""
Configurações globais e valores padrão do armazém de sementes.
"""

import os
from dataclasses import dataclass, field


# Caminho padrão do banco de dados SQLite
DB_PATH = os.environ.get("ARMAZEM_DB", os.path.join(os.getcwd(), "armazem.db"))


def _env_bool(nome: str, padrao: bool) -> bool:
    val = os.environ.get(nome)
    if val is None:
        return padrao
    return val.strip().lower() in {"1", "true", "t", "sim", "s", "yes", "y"}


@dataclass
class DefaultConfig:
    """Valores padrão para parâmetros do sistema."""
    capacidade_padrao_kg: float = 1000.0   # capacidade de cada localização gerada
    variacao_capacidade: bool = False      # aplica modificadores por andar/centralidade
    dias_alerta_validade: int = 30         # janela padrão do relatório de vencimentos


@dataclass
class ArmazemConfig:
    """Configuração de execução do núcleo (banco, transações e locks)."""
    db_path: str = DB_PATH
    timeout_s: float = 5.0                 # busy timeout do SQLite
    transacional: bool = True              # False força o modo degradado
    permitir_modo_degradado: bool = field(
        default_factory=lambda: _env_bool("ARMAZEM_PERMITIR_DEGRADADO", True)
    )
    tentativas_lock: int = 3               # releituras quando a localização muda sob o lock
    padroes: DefaultConfig = field(default_factory=DefaultConfig)


# Instância global dos valores padrão
DEFAULTS = DefaultConfig()
