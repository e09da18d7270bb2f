# armazem/domain/models.py
"""
Modelos (dataclasses) do domínio.

Observação importante:
- Os repositórios convertem linhas do SQLite nestas dataclasses e
  aceitam dicionários na escrita.
- ``peso_total`` do produto é sempre derivado (quantidade × peso por
  unidade); nunca é aceito como entrada.
- O código da localização é derivado das coordenadas (ver
  ``armazem.domain.coordenadas``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class StatusProduto(str, Enum):
    CADASTRADO = "CADASTRADO"
    AGUARDANDO_LOCACAO = "AGUARDANDO_LOCACAO"
    LOCADO = "LOCADO"
    AGUARDANDO_RETIRADA = "AGUARDANDO_RETIRADA"
    RETIRADO = "RETIRADO"
    REMOVIDO = "REMOVIDO"


class TipoMovimentacao(str, Enum):
    ENTRADA = "entry"
    SAIDA = "exit"
    TRANSFERENCIA = "transfer"
    AJUSTE = "adjustment"


class StatusRetirada(str, Enum):
    PENDENTE = "PENDENTE"
    CONFIRMADO = "CONFIRMADO"
    CANCELADO = "CANCELADO"


class TipoRetirada(str, Enum):
    TOTAL = "TOTAL"
    PARCIAL = "PARCIAL"


class TipoArmazenamento(str, Enum):
    SACO = "saco"
    BAG = "bag"


class StatusCamara(str, Enum):
    ATIVA = "active"
    MANUTENCAO = "maintenance"
    INATIVA = "inactive"


def peso_total(quantidade: int, peso_por_unidade: float) -> float:
    """Peso total arredondado a 3 casas (grama)."""
    return round(int(quantidade) * float(peso_por_unidade), 3)


@dataclass(frozen=True)
class Coordenada:
    """Endereço 4D de uma localização; ``lado`` é o índice inteiro do eixo."""
    quadra: int
    lado: int
    fila: int
    andar: int


@dataclass(frozen=True)
class Dimensoes:
    """Quantidade de posições em cada eixo da câmara."""
    quadras: int
    lados: int
    filas: int
    andares: int

    @property
    def total(self) -> int:
        return self.quadras * self.lados * self.filas * self.andares


@dataclass
class Camara:
    """Câmara refrigerada subdividida em grade 4D."""
    id: Optional[int]
    nome: str
    dimensoes: Dimensoes
    status: StatusCamara = StatusCamara.ATIVA
    descricao: Optional[str] = None
    temperatura_alvo: Optional[float] = None
    umidade_alvo: Optional[float] = None
    criado_em: Optional[str] = None


@dataclass
class Localizacao:
    """Menor posição endereçável; comporta no máximo um produto."""
    id: Optional[int]
    camara_id: int
    coordenada: Coordenada
    codigo: str
    capacidade_max_kg: float
    peso_atual_kg: float = 0.0
    ocupada: bool = False
    nivel_acesso: str = "ground"

    @property
    def capacidade_disponivel_kg(self) -> float:
        return round(self.capacidade_max_kg - self.peso_atual_kg, 3)

    @property
    def percentual_ocupacao(self) -> int:
        if not self.capacidade_max_kg:
            return 0
        return round(self.peso_atual_kg / self.capacidade_max_kg * 100)


@dataclass
class Produto:
    """Lote de sementes registrado no armazém."""
    id: Optional[int]
    nome: str
    lote: str
    tipo_semente: str
    quantidade: int
    tipo_armazenamento: TipoArmazenamento
    peso_por_unidade: float
    status: StatusProduto
    data_entrada: str
    peso_total: float = 0.0
    localizacao_id: Optional[int] = None
    cliente_id: Optional[str] = None
    data_validade: Optional[str] = None
    observacoes: Optional[str] = None
    produto_origem_id: Optional[int] = None
    versao: int = 0
    criado_por: Optional[str] = None
    atualizado_em: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.status in (StatusProduto.RETIRADO, StatusProduto.REMOVIDO)


@dataclass(frozen=True)
class Movimentacao:
    """Entrada imutável do razão de movimentações."""
    id: Optional[int]
    produto_id: int
    tipo: TipoMovimentacao
    quantidade: int
    peso: float
    usuario_id: str
    motivo: str
    localizacao_origem_id: Optional[int] = None
    localizacao_destino_id: Optional[int] = None
    observacoes: Optional[str] = None
    timestamp: Optional[str] = None
    sequencia: Optional[int] = None
    quantidade_anterior: Optional[int] = None
    quantidade_posterior: Optional[int] = None
    peso_anterior: Optional[float] = None
    peso_posterior: Optional[float] = None
    operacao: Optional[str] = None


@dataclass
class SolicitacaoRetirada:
    """Pedido de retirada (solicitante) aguardando confirmação (confirmador)."""
    id: Optional[int]
    produto_id: int
    tipo: TipoRetirada
    quantidade_solicitada: int
    solicitado_por: str
    status: StatusRetirada = StatusRetirada.PENDENTE
    motivo: Optional[str] = None
    observacoes: Optional[str] = None
    confirmado_por: Optional[str] = None
    cancelado_por: Optional[str] = None
    solicitado_em: Optional[str] = None
    confirmado_em: Optional[str] = None
    cancelado_em: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.status != StatusRetirada.PENDENTE


@dataclass
class ResultadoProvisionamento:
    camara_id: int
    criadas: int
    removidas: int = 0
    capacidade_total_kg: float = 0.0
    codigos: list = field(default_factory=list)
