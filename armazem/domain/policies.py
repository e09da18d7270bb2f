"""
Políticas de negócio e utilidades puras do armazém.

Este módulo contém as regras que não dependem de armazenamento:
capacidade por localização na geração de uma câmara, classificação de
vencimento, validação de dados de produto e de dimensões, e a tabela de
capacidades por papel (ADMIN / OPERATOR).

A tabela de capacidades é aplicada pela camada de orquestração (CLI,
controladores) antes de chamar o núcleo; o núcleo apenas registra a
identidade do ator em cada registro.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .erros import ValidationError
from .models import Coordenada, Dimensoes, TipoArmazenamento


# ----------------------
# Capacidade
# ----------------------

@dataclass(frozen=True)
class PoliticaCapacidade:
    """Capacidade máxima (kg) atribuída a cada localização gerada.

    Com ``variacao`` ligada, andares baixos recebem mais capacidade
    (acesso mais fácil) e posições centrais um pequeno acréscimo:

        - andar <= 2 → ×1.2 ; andar <= 5 → ×1.0 ; demais → ×0.8
        - quadra > 1 e lado > 1 → ×1.1
    """
    capacidade_padrao_kg: float = 1000.0
    variacao: bool = False

    def capacidade_para(self, coord: Coordenada) -> float:
        if self.capacidade_padrao_kg <= 0:
            raise ValidationError(
                "capacidade padrão deve ser positiva",
                campo="capacidade_padrao_kg",
                valor=self.capacidade_padrao_kg,
            )
        if not self.variacao:
            return float(self.capacidade_padrao_kg)
        if coord.andar <= 2:
            mod_andar = 1.2
        elif coord.andar <= 5:
            mod_andar = 1.0
        else:
            mod_andar = 0.8
        mod_centro = 1.1 if coord.quadra > 1 and coord.lado > 1 else 1.0
        return float(round(self.capacidade_padrao_kg * mod_andar * mod_centro))


# ----------------------
# Vencimento
# ----------------------

def status_validade(data_validade: Optional[str], hoje: Optional[date] = None) -> str:
    """Classifica o vencimento de um produto.

    Regras:
        - sem data → ``'no-expiration'``
        - vencido (dias < 0) → ``'expired'``
        - dias <= 7 → ``'critical'``
        - dias <= 30 → ``'warning'``
        - demais → ``'good'``
    """
    if not data_validade:
        return "no-expiration"
    hoje = hoje or date.today()
    try:
        validade = date.fromisoformat(str(data_validade)[:10])
    except ValueError:
        return "no-expiration"
    dias = (validade - hoje).days
    if dias < 0:
        return "expired"
    if dias <= 7:
        return "critical"
    if dias <= 30:
        return "warning"
    return "good"


# ----------------------
# Validações
# ----------------------

def _texto(dados: Dict[str, Any], campo: str, minimo: int, maximo: int) -> str:
    val = dados.get(campo)
    s = str(val).strip() if val is not None else ""
    if len(s) < minimo or len(s) > maximo:
        raise ValidationError(
            f"{campo} deve ter entre {minimo} e {maximo} caracteres", campo=campo, valor=val
        )
    return s


def validar_quantidade(quantidade: Any, campo: str = "quantidade") -> int:
    if isinstance(quantidade, bool) or not isinstance(quantidade, int):
        raise ValidationError(f"{campo} deve ser um número inteiro", campo=campo, valor=quantidade)
    if quantidade <= 0:
        raise ValidationError(f"{campo} deve ser maior que zero", campo=campo, valor=quantidade)
    return quantidade


def validar_dados_produto(dados: Dict[str, Any]) -> Dict[str, Any]:
    """Valida regras de negócio de um novo produto e devolve o payload normalizado.

    ``peso_total`` nunca é aceito: é sempre derivado.
    """
    nome = _texto(dados, "nome", 2, 200)
    lote = _texto(dados, "lote", 1, 50)
    tipo_semente = _texto(dados, "tipo_semente", 1, 100)
    quantidade = validar_quantidade(dados.get("quantidade"))

    bruto = dados.get("tipo_armazenamento", "")
    try:
        tipo = TipoArmazenamento(str(getattr(bruto, "value", bruto)).strip().lower())
    except ValueError:
        raise ValidationError(
            "tipo_armazenamento deve ser saco ou bag",
            campo="tipo_armazenamento",
            valor=dados.get("tipo_armazenamento"),
        ) from None

    ppu = dados.get("peso_por_unidade")
    try:
        ppu = float(ppu)
    except (TypeError, ValueError):
        raise ValidationError("peso_por_unidade inválido", campo="peso_por_unidade", valor=ppu) from None
    if not (0.001 <= ppu <= 1000):
        raise ValidationError(
            "peso_por_unidade deve estar entre 0.001kg e 1000kg", campo="peso_por_unidade", valor=ppu
        )

    data_entrada = dados.get("data_entrada") or date.today().isoformat()
    data_validade = dados.get("data_validade") or None
    try:
        entrada = date.fromisoformat(str(data_entrada)[:10])
        validade = date.fromisoformat(str(data_validade)[:10]) if data_validade else None
    except ValueError as exc:
        raise ValidationError(f"data inválida: {exc}", campo="data", valor=data_validade or data_entrada) from None
    if validade is not None and validade <= entrada:
        raise ValidationError(
            "data_validade deve ser posterior à data_entrada", campo="data_validade", valor=data_validade
        )

    observacoes = dados.get("observacoes")
    if observacoes is not None and len(str(observacoes)) > 1000:
        raise ValidationError("observacoes deve ter no máximo 1000 caracteres", campo="observacoes")

    return {
        "nome": nome,
        "lote": lote,
        "tipo_semente": tipo_semente,
        "quantidade": quantidade,
        "tipo_armazenamento": tipo,
        "peso_por_unidade": ppu,
        "cliente_id": (str(dados["cliente_id"]).strip() or None) if dados.get("cliente_id") else None,
        "data_entrada": entrada.isoformat(),
        "data_validade": validade.isoformat() if validade else None,
        "observacoes": observacoes,
    }


_LIMITES_DIMENSAO = {"quadras": 100, "lados": 100, "filas": 100, "andares": 20}


def validar_dimensoes(dimensoes: Any) -> Dimensoes:
    if isinstance(dimensoes, Dimensoes):
        valores = {k: getattr(dimensoes, k) for k in _LIMITES_DIMENSAO}
    elif isinstance(dimensoes, dict):
        valores = {k: dimensoes.get(k) for k in _LIMITES_DIMENSAO}
    elif isinstance(dimensoes, (tuple, list)) and len(dimensoes) == 4:
        valores = dict(zip(_LIMITES_DIMENSAO, dimensoes))
    else:
        raise ValidationError("dimensões inválidas", campo="dimensoes", valor=dimensoes)
    for eixo, maximo in _LIMITES_DIMENSAO.items():
        v = valores[eixo]
        if isinstance(v, bool) or not isinstance(v, int) or not (1 <= v <= maximo):
            raise ValidationError(f"{eixo} deve ser inteiro entre 1 e {maximo}", campo=eixo, valor=v)
    return Dimensoes(**valores)


def validar_motivo(motivo: Any) -> str:
    s = str(motivo).strip() if motivo is not None else ""
    if not s:
        raise ValidationError("motivo é obrigatório", campo="motivo", valor=motivo)
    return s


# ----------------------
# Capacidades por papel
# ----------------------

PAPEIS = ("ADMIN", "OPERATOR")

_CAPACIDADES: Dict[Tuple[str, str], bool] = {
    ("ADMIN", "produto.criar"): True,
    ("ADMIN", "produto.alocar"): True,
    ("ADMIN", "produto.mover"): True,
    ("ADMIN", "produto.saida"): True,
    ("ADMIN", "produto.adicionar_estoque"): True,
    ("ADMIN", "produto.remover"): True,
    ("ADMIN", "retirada.solicitar"): True,
    ("ADMIN", "retirada.cancelar"): True,
    ("ADMIN", "camara.criar"): True,
    ("ADMIN", "camara.provisionar"): True,
    ("ADMIN", "camara.status"): True,
    ("OPERATOR", "produto.alocar"): True,
    ("OPERATOR", "produto.mover"): True,
    ("OPERATOR", "retirada.confirmar"): True,
}

CAPACIDADES: Mapping[Tuple[str, str], bool] = MappingProxyType(_CAPACIDADES)


def pode(papel: str, acao: str) -> bool:
    return CAPACIDADES.get((str(papel).upper(), acao), False)


class PermissaoNegada(Exception):
    """Levantada pela orquestração quando o papel não tem a capacidade."""

    def __init__(self, papel: str, acao: str):
        self.papel = papel
        self.acao = acao
        super().__init__(f"Papel {papel} não pode executar {acao}")


def exigir_permissao(papel: str, acao: str) -> None:
    if not pode(papel, acao):
        raise PermissaoNegada(papel, acao)
