# armazem/adapters/parsers.py
"""
Normalização de valores na fronteira (CLI, planilhas).

O núcleo recebe tipos já normalizados; aqui ficam as conversões de texto
livre para esses tipos:
- números com vírgula ou ponto decimal ("2,5 kg" -> 2.5)
- quantidades inteiras ("10 sacos" -> 10)
- datas em ISO (aceita DD/MM/AAAA)
- enums (status, tipo de armazenamento, tipo de retirada)
- lado em letra ou número e coordenadas completas
"""

from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import Optional, Type, TypeVar

from armazem.domain.coordenadas import interpretar_lado, parse_codigo
from armazem.domain.erros import ValidationError
from armazem.domain.models import Coordenada

_NUM_RE = re.compile(r"[-+]?\d+(?:[.,]\d+)?")

E = TypeVar("E", bound=Enum)


def parse_numero(txt) -> Optional[float]:
    """Extrai o primeiro número de um texto.

    Exemplos:
        "25,5 kg" → 25.5
        "40"      → 40.0
        ""        → None
    """
    if txt is None:
        return None
    if isinstance(txt, (int, float)) and not isinstance(txt, bool):
        return float(txt)
    s = str(txt).strip()
    if not s:
        return None
    m = _NUM_RE.search(s)
    if not m:
        return None
    return float(m.group(0).replace(",", "."))


def parse_quantidade(txt) -> Optional[int]:
    """Quantidade inteira de unidades; frações são rejeitadas."""
    num = parse_numero(txt)
    if num is None:
        return None
    if num != int(num):
        raise ValidationError("quantidade deve ser inteira", campo="quantidade", valor=txt)
    return int(num)


def parse_data_iso(txt) -> Optional[str]:
    """Converte data para ISO (YYYY-MM-DD). Aceita ISO, DD/MM/AAAA e DD-MM-AAAA."""
    if txt is None:
        return None
    if isinstance(txt, datetime):
        return txt.date().isoformat()
    if isinstance(txt, date):
        return txt.isoformat()
    s = str(txt).strip()
    if not s:
        return None
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    raise ValidationError(f"data inválida: {s}", campo="data", valor=txt)


def parse_enum(enum_cls: Type[E], txt, campo: str) -> E:
    """Casa ``txt`` com o valor ou o nome do membro, sem diferenciar caixa."""
    if isinstance(txt, enum_cls):
        return txt
    s = str(txt or "").strip()
    for membro in enum_cls:
        if s.lower() in (str(membro.value).lower(), membro.name.lower()):
            return membro
    opcoes = ", ".join(str(m.value) for m in enum_cls)
    raise ValidationError(f"{campo} deve ser um de: {opcoes}", campo=campo, valor=txt)


def parse_lado(txt) -> int:
    """Lado em letra ("B") ou número ("2") -> índice inteiro."""
    return interpretar_lado(txt)


def parse_coordenada(txt: str) -> Coordenada:
    """Aceita código ("Q1-LB-F2-A3") ou lista separada por vírgula ("1,B,2,3")."""
    s = str(txt or "").strip()
    if "," in s:
        partes = [p.strip() for p in s.split(",")]
        if len(partes) != 4:
            raise ValidationError("coordenada deve ter 4 partes: quadra,lado,fila,andar", campo="coordenada", valor=txt)
        try:
            quadra, fila, andar = int(partes[0]), int(partes[2]), int(partes[3])
        except ValueError:
            raise ValidationError("coordenada inválida", campo="coordenada", valor=txt) from None
        return Coordenada(quadra, parse_lado(partes[1]), fila, andar)
    return parse_codigo(s)
