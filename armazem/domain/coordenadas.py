"""
Coordenadas e códigos de localização.

Uma localização é endereçada por quatro eixos inteiros positivos: quadra,
lado, fila e andar. Em dados antigos o lado aparece ora como número
("L2"), ora como letra ("LB"). Internamente é sempre o índice inteiro;
a letra é só a forma de exibição (``formatar_lado``) e é lida de volta
por ``interpretar_lado``.

Funções puras: o código é sempre regenerável a partir da coordenada.
"""

from __future__ import annotations

import re
from typing import Union

from .erros import ValidationError
from .models import Coordenada


_CODIGO_RE = re.compile(
    r"^\s*Q(?P<quadra>\d+)-L(?P<lado>\d+|[A-Za-z]+)-F(?P<fila>\d+)-A(?P<andar>\d+)\s*$"
)


def formatar_lado(indice: int) -> str:
    """Índice inteiro do lado em letras (1 -> A, 26 -> Z, 27 -> AA).

    Args:
        indice: Índice positivo do eixo.

    Returns:
        Forma em letras (base 26 bijetiva).
    """
    n = int(indice)
    if n < 1:
        raise ValidationError("lado deve ser um inteiro positivo", campo="lado", valor=indice)
    letras = []
    while n > 0:
        n, resto = divmod(n - 1, 26)
        letras.append(chr(ord("A") + resto))
    return "".join(reversed(letras))


def interpretar_lado(valor: Union[int, str]) -> int:
    """Lado em número ou letras -> índice inteiro."""
    if isinstance(valor, bool):
        raise ValidationError("lado inválido", campo="lado", valor=valor)
    if isinstance(valor, int):
        if valor < 1:
            raise ValidationError("lado deve ser um inteiro positivo", campo="lado", valor=valor)
        return valor
    s = str(valor).strip().upper()
    if not s:
        raise ValidationError("lado não informado", campo="lado", valor=valor)
    if s.isdigit():
        return interpretar_lado(int(s))
    if not s.isalpha() or not s.isascii():
        raise ValidationError("lado deve ser número ou letras A-Z", campo="lado", valor=valor)
    n = 0
    for ch in s:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n


def gerar_codigo(coord: Coordenada) -> str:
    """Código determinístico ``Q{quadra}-L{lado}-F{fila}-A{andar}`` (lado em letras)."""
    return f"Q{coord.quadra}-L{formatar_lado(coord.lado)}-F{coord.fila}-A{coord.andar}"


def parse_codigo(codigo: str) -> Coordenada:
    """Converte um código de volta na coordenada.

    Aceita a forma numérica antiga ("Q1-L2-F3-A4") e a forma canônica com
    letra ("Q1-LB-F3-A4"); ambas resultam na mesma coordenada.
    """
    m = _CODIGO_RE.match(codigo or "")
    if not m:
        raise ValidationError("código de localização inválido", campo="codigo", valor=codigo)
    coord = Coordenada(
        quadra=int(m.group("quadra")),
        lado=interpretar_lado(m.group("lado")),
        fila=int(m.group("fila")),
        andar=int(m.group("andar")),
    )
    if min(coord.quadra, coord.fila, coord.andar) < 1:
        raise ValidationError("coordenadas devem ser positivas", campo="codigo", valor=codigo)
    return coord


def nivel_acesso(andar: int) -> str:
    """Nível de acesso pelo andar: ground (≤2), elevated (≤5), high."""
    if andar <= 2:
        return "ground"
    if andar <= 5:
        return "elevated"
    return "high"


def texto_coordenadas(coord: Coordenada) -> str:
    return (
        f"Quadra {coord.quadra}, Lado {formatar_lado(coord.lado)}, "
        f"Fila {coord.fila}, Andar {coord.andar}"
    )
