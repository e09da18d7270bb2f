# armazem/domain/erros.py
"""
Hierarquia tipada de erros do núcleo de inventário.

Todo erro carrega:
- ``code``: identificador estável, legível por máquina;
- ``categoria``: categoria enumerável usada pelas camadas de apresentação
  para escolher a mensagem sem inspecionar detalhes internos;
- atributos estruturados com o id ofensivo e, quando aplicável, o estado
  atual e o solicitado.

    ArmazemError
    +-- ValidationError          (entrada de negócio malformada)
    +-- NotFoundError            (id desconhecido)
    +-- ConflictError            (ocupação / solicitação pendente)
    +-- CapacityError            (peso excede o limite)
    +-- InvalidTransitionError   (mudança de status fora da tabela)
    +-- InvalidStateError        (operação sobre registro terminal/estado errado)
    +-- ImmutableRecordError     (UPDATE/DELETE no razão de movimentações)
    +-- StorageUnavailableError  (substrato transacional indisponível)
"""

from __future__ import annotations

from typing import Any, Dict, Optional


CATEGORIAS = (
    "validacao",
    "nao_encontrado",
    "conflito",
    "capacidade",
    "transicao_invalida",
    "estado_invalido",
    "imutavel",
    "armazenamento",
)


class ArmazemError(Exception):
    """Base de todos os erros do núcleo."""

    code: str = "ARMAZEM_ERROR"
    categoria: str = "armazenamento"

    def __init__(self, mensagem: str, **contexto: Any):
        self.mensagem = mensagem
        self.contexto: Dict[str, Any] = contexto
        super().__init__(mensagem)

    def como_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "categoria": self.categoria,
            "mensagem": self.mensagem,
            "contexto": dict(self.contexto),
        }


class ValidationError(ArmazemError):
    code = "VALIDATION_ERROR"
    categoria = "validacao"

    def __init__(self, mensagem: str, campo: Optional[str] = None, valor: Any = None):
        self.campo = campo
        self.valor = valor
        super().__init__(mensagem, campo=campo, valor=valor)


class NotFoundError(ArmazemError):
    code = "NOT_FOUND"
    categoria = "nao_encontrado"

    def __init__(self, entidade: str, entidade_id: Any):
        self.entidade = entidade
        self.entidade_id = entidade_id
        super().__init__(
            f"{entidade} não encontrado(a): {entidade_id}",
            entidade=entidade,
            entidade_id=entidade_id,
        )


class ConflictError(ArmazemError):
    code = "CONFLICT"
    categoria = "conflito"

    def __init__(self, mensagem: str, entidade: str, entidade_id: Any):
        self.entidade = entidade
        self.entidade_id = entidade_id
        super().__init__(mensagem, entidade=entidade, entidade_id=entidade_id)


class CapacityError(ArmazemError):
    code = "CAPACITY_EXCEEDED"
    categoria = "capacidade"

    def __init__(self, localizacao_id: Any, peso_solicitado: float, capacidade: float,
                 mensagem: Optional[str] = None):
        self.localizacao_id = localizacao_id
        self.peso_solicitado = peso_solicitado
        self.capacidade = capacidade
        super().__init__(
            mensagem
            or (
                f"Localização {localizacao_id}: peso {peso_solicitado}kg "
                f"excede a capacidade máxima de {capacidade}kg"
            ),
            localizacao_id=localizacao_id,
            peso_solicitado=peso_solicitado,
            capacidade=capacidade,
        )


class InvalidTransitionError(ArmazemError):
    code = "INVALID_TRANSITION"
    categoria = "transicao_invalida"

    def __init__(self, produto_id: Any, atual: str, solicitado: str):
        self.produto_id = produto_id
        self.atual = atual
        self.solicitado = solicitado
        super().__init__(
            f"Produto {produto_id}: transição {atual} -> {solicitado} não permitida",
            produto_id=produto_id,
            atual=atual,
            solicitado=solicitado,
        )


class InvalidStateError(ArmazemError):
    code = "INVALID_STATE"
    categoria = "estado_invalido"

    def __init__(self, entidade: str, entidade_id: Any, atual: str, esperado: str):
        self.entidade = entidade
        self.entidade_id = entidade_id
        self.atual = atual
        self.esperado = esperado
        super().__init__(
            f"{entidade} {entidade_id} está em {atual}; operação exige {esperado}",
            entidade=entidade,
            entidade_id=entidade_id,
            atual=atual,
            esperado=esperado,
        )


class ImmutableRecordError(ArmazemError):
    code = "IMMUTABLE_RECORD"
    categoria = "imutavel"

    def __init__(self, tabela: str):
        self.tabela = tabela
        super().__init__(f"Registros de {tabela} são imutáveis", tabela=tabela)


class StorageUnavailableError(ArmazemError):
    code = "STORAGE_UNAVAILABLE"
    categoria = "armazenamento"

    def __init__(self, motivo: str):
        self.motivo = motivo
        super().__init__(f"Armazenamento transacional indisponível: {motivo}", motivo=motivo)
