# armazem/usecases/alocador.py
"""
UC: Alocador de localizações.

Controla ocupação (binária) e peso de cada localização:
- reservar / ajustar_peso / liberar
- provisionar: gera a grade quadra × lado × fila × andar de uma câmara
- buscar_disponiveis: posições livres que comportam um peso

Todas as operações aceitam ``tx`` para participar de uma operação composta
(mudança de status + razão). Sem ``tx``, abrem a própria transação sob o
lock da localização.
"""

from __future__ import annotations

from itertools import product as cartesiano
from typing import List, Optional

from armazem.domain.coordenadas import parse_codigo
from armazem.domain.erros import (
    CapacityError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from armazem.domain.models import Coordenada, Localizacao, ResultadoProvisionamento
from armazem.domain.policies import PoliticaCapacidade, validar_dimensoes
from armazem.infra.locks import chave_localizacao
from armazem.infra.logger import log_database_operation, log_system_event
from armazem.infra.repositories import CamaraRepo, LocalizacaoRepo
from armazem.infra.transacao import BancoArmazem, Transacao


class AlocadorLocalizacoes:
    def __init__(self, banco: BancoArmazem, politica: Optional[PoliticaCapacidade] = None):
        self.banco = banco
        padroes = banco.config.padroes
        self.politica = politica or PoliticaCapacidade(
            padroes.capacidade_padrao_kg, padroes.variacao_capacidade
        )

    @staticmethod
    def _carregar(tx: Transacao, localizacao_id: int) -> Localizacao:
        loc = LocalizacaoRepo(tx.conn, tx).obter(localizacao_id)
        if loc is None:
            raise NotFoundError("localizacao", localizacao_id)
        return loc

    # ------------------------------
    # ocupação
    # ------------------------------

    def reservar(self, localizacao_id: int, peso_kg: float, tx: Optional[Transacao] = None) -> Localizacao:
        """Ocupa a localização com ``peso_kg``."""
        peso_kg = round(float(peso_kg), 3)
        if peso_kg <= 0:
            raise ValidationError("peso deve ser maior que zero", campo="peso_kg", valor=peso_kg)
        with self.banco.unidade(tx, "reservar", chave_localizacao(localizacao_id)) as t:
            loc = self._carregar(t, localizacao_id)
            if loc.ocupada:
                raise ConflictError(
                    f"Localização {loc.codigo} já está ocupada", "localizacao", localizacao_id
                )
            if peso_kg > loc.capacidade_max_kg:
                raise CapacityError(localizacao_id, peso_kg, loc.capacidade_max_kg)
            LocalizacaoRepo(t.conn, t).atualizar_ocupacao(localizacao_id, True, peso_kg)
            log_database_operation("localizacao", "RESERVAR", 1, localizacao_id=localizacao_id, peso_kg=peso_kg)
            return self._carregar(t, localizacao_id)

    def ajustar_peso(self, localizacao_id: int, delta_kg: float, tx: Optional[Transacao] = None) -> Localizacao:
        """Soma ``delta_kg`` (positivo ou negativo) ao peso de uma localização ocupada."""
        with self.banco.unidade(tx, "ajustar_peso", chave_localizacao(localizacao_id)) as t:
            loc = self._carregar(t, localizacao_id)
            if not loc.ocupada:
                raise InvalidStateError("localizacao", localizacao_id, "livre", "ocupada")
            novo = round(loc.peso_atual_kg + float(delta_kg), 3)
            if novo < 0 or novo > loc.capacidade_max_kg:
                raise CapacityError(
                    localizacao_id,
                    novo,
                    loc.capacidade_max_kg,
                    mensagem=f"Peso resultante {novo}kg fora do intervalo [0, {loc.capacidade_max_kg}]kg",
                )
            LocalizacaoRepo(t.conn, t).atualizar_ocupacao(localizacao_id, True, novo)
            log_database_operation("localizacao", "AJUSTAR_PESO", 1, localizacao_id=localizacao_id, delta_kg=delta_kg)
            return self._carregar(t, localizacao_id)

    def liberar(self, localizacao_id: int, tx: Optional[Transacao] = None) -> bool:
        """Libera a localização. Retorna False (sem escrever nada) se já estava livre."""
        with self.banco.unidade(tx, "liberar", chave_localizacao(localizacao_id)) as t:
            loc = self._carregar(t, localizacao_id)
            if not loc.ocupada and not loc.peso_atual_kg:
                return False
            LocalizacaoRepo(t.conn, t).atualizar_ocupacao(localizacao_id, False, 0.0)
            log_database_operation("localizacao", "LIBERAR", 1, localizacao_id=localizacao_id)
            return True

    # ------------------------------
    # provisionamento
    # ------------------------------

    def provisionar(
        self,
        camara_id: int,
        dimensoes=None,
        politica: Optional[PoliticaCapacidade] = None,
        sobrescrever: bool = False,
        tx: Optional[Transacao] = None,
    ) -> ResultadoProvisionamento:
        """Gera todas as localizações da câmara (produto cartesiano dos eixos)."""
        politica = politica or self.politica
        with self.banco.unidade(tx, "provisionar", ("camara", int(camara_id))) as t:
            camara = CamaraRepo(t.conn, t).obter(camara_id)
            if camara is None:
                raise NotFoundError("camara", camara_id)
            dims = validar_dimensoes(dimensoes if dimensoes is not None else camara.dimensoes)

            repo = LocalizacaoRepo(t.conn, t)
            existentes = repo.contar(camara_id)
            removidas = 0
            if existentes:
                if not sobrescrever:
                    raise ConflictError(
                        f"Câmara {camara.nome} já possui {existentes} localizações", "camara", camara_id
                    )
                if repo.contar(camara_id, somente_ocupadas=True) or repo.contar_vinculadas(camara_id):
                    raise ConflictError(
                        f"Câmara {camara.nome} possui localizações ocupadas", "camara", camara_id
                    )
                if repo.contar_com_historico(camara_id):
                    raise ConflictError(
                        f"Câmara {camara.nome} possui localizações com histórico de movimentações",
                        "camara",
                        camara_id,
                    )
                removidas = repo.apagar_da_camara(camara_id)

            if dims != camara.dimensoes:
                CamaraRepo(t.conn, t).atualizar_dimensoes(camara_id, dims)

            itens = []
            for q, lado, f, a in cartesiano(
                range(1, dims.quadras + 1),
                range(1, dims.lados + 1),
                range(1, dims.filas + 1),
                range(1, dims.andares + 1),
            ):
                coord = Coordenada(q, lado, f, a)
                itens.append((coord, politica.capacidade_para(coord)))
            repo.inserir_muitas(camara_id, itens)

            resultado = ResultadoProvisionamento(
                camara_id=camara_id,
                criadas=len(itens),
                removidas=removidas,
                capacidade_total_kg=round(sum(c for _, c in itens), 3),
                codigos=[loc.codigo for loc in repo.listar_por_camara(camara_id)],
            )
            log_system_event(
                "camara_provisionada",
                {"camara_id": camara_id, "criadas": resultado.criadas, "removidas": removidas},
            )
            return resultado

    # ------------------------------
    # consultas
    # ------------------------------

    def buscar_disponiveis(self, peso_kg: float = 0.0, camara_id: Optional[int] = None,
                           limite: int = 50) -> List[Localizacao]:
        with self.banco.leitura() as conn:
            return LocalizacaoRepo(conn).disponiveis(peso_kg, camara_id, limite)

    def obter(self, localizacao_id: int) -> Localizacao:
        with self.banco.leitura() as conn:
            loc = LocalizacaoRepo(conn).obter(localizacao_id)
        if loc is None:
            raise NotFoundError("localizacao", localizacao_id)
        return loc

    def obter_por_codigo(self, camara_id: int, codigo: str) -> Localizacao:
        coord = parse_codigo(codigo)
        with self.banco.leitura() as conn:
            loc = LocalizacaoRepo(conn).obter_por_coordenada(camara_id, coord)
        if loc is None:
            raise NotFoundError("localizacao", codigo)
        return loc
