# armazem/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: tabelas base (câmaras, localizações, produtos, razão, retiradas)
V2: colunas de auditoria antes/depois no razão, gatilhos de imutabilidade
    e índices únicos parciais (um produto ativo por localização, uma
    solicitação pendente por produto)
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    # Câmaras refrigeradas
    """
    CREATE TABLE IF NOT EXISTS camara (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nome TEXT NOT NULL UNIQUE,
        descricao TEXT,
        quadras INTEGER NOT NULL CHECK (quadras >= 1),
        lados INTEGER NOT NULL CHECK (lados >= 1),
        filas INTEGER NOT NULL CHECK (filas >= 1),
        andares INTEGER NOT NULL CHECK (andares >= 1),
        status TEXT NOT NULL DEFAULT 'active'
            CHECK (status IN ('active', 'maintenance', 'inactive')),
        temperatura_alvo REAL,
        umidade_alvo REAL,
        criado_em TEXT
    );
    """,
    # Localizações (grade 4D). `codigo` é cache derivado das coordenadas.
    """
    CREATE TABLE IF NOT EXISTS localizacao (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        camara_id INTEGER NOT NULL,
        quadra INTEGER NOT NULL CHECK (quadra >= 1),
        lado INTEGER NOT NULL CHECK (lado >= 1),
        fila INTEGER NOT NULL CHECK (fila >= 1),
        andar INTEGER NOT NULL CHECK (andar >= 1),
        codigo TEXT NOT NULL,
        ocupada INTEGER NOT NULL DEFAULT 0 CHECK (ocupada IN (0, 1)),
        capacidade_max_kg REAL NOT NULL CHECK (capacidade_max_kg > 0),
        peso_atual_kg REAL NOT NULL DEFAULT 0
            CHECK (peso_atual_kg >= 0 AND peso_atual_kg <= capacidade_max_kg),
        nivel_acesso TEXT,
        UNIQUE (camara_id, quadra, lado, fila, andar),
        UNIQUE (camara_id, codigo),
        FOREIGN KEY (camara_id) REFERENCES camara(id)
    );
    """,
    # Produtos (lotes de sementes)
    """
    CREATE TABLE IF NOT EXISTS produto (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nome TEXT NOT NULL,
        lote TEXT NOT NULL,
        tipo_semente TEXT NOT NULL,
        quantidade INTEGER NOT NULL CHECK (quantidade >= 0),
        tipo_armazenamento TEXT NOT NULL CHECK (tipo_armazenamento IN ('saco', 'bag')),
        peso_por_unidade REAL NOT NULL CHECK (peso_por_unidade > 0),
        peso_total REAL NOT NULL DEFAULT 0,
        localizacao_id INTEGER,
        cliente_id TEXT,
        data_entrada TEXT NOT NULL,
        data_validade TEXT,
        status TEXT NOT NULL CHECK (status IN (
            'CADASTRADO', 'AGUARDANDO_LOCACAO', 'LOCADO',
            'AGUARDANDO_RETIRADA', 'RETIRADO', 'REMOVIDO')),
        observacoes TEXT,
        produto_origem_id INTEGER,
        versao INTEGER NOT NULL DEFAULT 0,
        criado_por TEXT,
        criado_em TEXT,
        atualizado_em TEXT,
        FOREIGN KEY (localizacao_id) REFERENCES localizacao(id),
        FOREIGN KEY (produto_origem_id) REFERENCES produto(id)
    );
    """,
    # Razão de movimentações (append-only)
    """
    CREATE TABLE IF NOT EXISTS movimentacao (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        produto_id INTEGER NOT NULL,
        tipo TEXT NOT NULL CHECK (tipo IN ('entry', 'exit', 'transfer', 'adjustment')),
        localizacao_origem_id INTEGER,
        localizacao_destino_id INTEGER,
        quantidade INTEGER NOT NULL CHECK (quantidade >= 0),
        peso REAL NOT NULL CHECK (peso >= 0),
        usuario_id TEXT NOT NULL,
        motivo TEXT NOT NULL CHECK (length(trim(motivo)) > 0),
        observacoes TEXT,
        timestamp TEXT NOT NULL,
        sequencia INTEGER NOT NULL,
        UNIQUE (produto_id, sequencia),
        FOREIGN KEY (produto_id) REFERENCES produto(id),
        FOREIGN KEY (localizacao_origem_id) REFERENCES localizacao(id),
        FOREIGN KEY (localizacao_destino_id) REFERENCES localizacao(id)
    );
    """,
    # Solicitações de retirada
    """
    CREATE TABLE IF NOT EXISTS solicitacao_retirada (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        produto_id INTEGER NOT NULL,
        tipo TEXT NOT NULL CHECK (tipo IN ('TOTAL', 'PARCIAL')),
        quantidade_solicitada INTEGER NOT NULL CHECK (quantidade_solicitada > 0),
        status TEXT NOT NULL DEFAULT 'PENDENTE'
            CHECK (status IN ('PENDENTE', 'CONFIRMADO', 'CANCELADO')),
        solicitado_por TEXT NOT NULL,
        confirmado_por TEXT,
        cancelado_por TEXT,
        motivo TEXT,
        observacoes TEXT,
        solicitado_em TEXT,
        confirmado_em TEXT,
        cancelado_em TEXT,
        FOREIGN KEY (produto_id) REFERENCES produto(id)
    );
    """,
]

SCHEMA_V2: List[str] = [
    # Razão imutável: qualquer UPDATE/DELETE é abortado
    """
    CREATE TRIGGER IF NOT EXISTS trg_movimentacao_sem_update
    BEFORE UPDATE ON movimentacao
    BEGIN
        SELECT RAISE(ABORT, 'movimentacao imutavel');
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_movimentacao_sem_delete
    BEFORE DELETE ON movimentacao
    BEGIN
        SELECT RAISE(ABORT, 'movimentacao imutavel');
    END;
    """,
    # Ocupação binária: no máximo um produto não-terminal por localização
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_produto_localizacao_ativa
    ON produto(localizacao_id)
    WHERE localizacao_id IS NOT NULL AND status NOT IN ('RETIRADO', 'REMOVIDO');
    """,
    # No máximo uma solicitação pendente por produto
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_retirada_pendente
    ON solicitacao_retirada(produto_id)
    WHERE status = 'PENDENTE';
    """,
]


def _ensure_column(conn, table: str, column: str, ddl: str) -> None:
    """Adiciona coluna se não existir."""
    cur = conn.execute(f"PRAGMA table_info({table});")
    cols = [r[1] for r in cur.fetchall()]  # r[1] é o nome da coluna
    if column not in cols:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {ddl};")


def _apply_v1(conn) -> None:
    for sql in SCHEMA_V1:
        conn.executescript(sql)


def _apply_v2(conn) -> None:
    # movimentacao: valores antes/depois para auditoria
    _ensure_column(conn, "movimentacao", "quantidade_anterior", "quantidade_anterior INTEGER")
    _ensure_column(conn, "movimentacao", "quantidade_posterior", "quantidade_posterior INTEGER")
    _ensure_column(conn, "movimentacao", "peso_anterior", "peso_anterior REAL")
    _ensure_column(conn, "movimentacao", "peso_posterior", "peso_posterior REAL")
    _ensure_column(conn, "movimentacao", "operacao", "operacao TEXT")
    for sql in SCHEMA_V2:
        conn.executescript(sql)


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        # WAL: leitores não bloqueiam escritores
        conn.execute("PRAGMA journal_mode = WAL;")
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply_v1(conn)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply_v2(conn)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2
