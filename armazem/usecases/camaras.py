# armazem/usecases/camaras.py
"""
UC: Administração de câmaras.

- criar (opcionalmente já provisionando as localizações na mesma transação)
- alterar_status, obter, listar
- arvore: estrutura aninhada quadra -> lado -> fila -> [localizações]
  para a interface de hierarquia (somente leitura)
- resumo_ocupacao: contagens e percentuais
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from armazem.domain.coordenadas import formatar_lado
from armazem.domain.erros import ConflictError, NotFoundError, ValidationError
from armazem.domain.models import Camara, ResultadoProvisionamento, StatusCamara
from armazem.domain.policies import PoliticaCapacidade, validar_dimensoes
from armazem.infra.logger import log_system_event
from armazem.infra.repositories import CamaraRepo, LocalizacaoRepo
from armazem.infra.transacao import BancoArmazem
from armazem.usecases.alocador import AlocadorLocalizacoes
from armazem.usecases.produtos import auditado


class AdministracaoCamaras:
    def __init__(self, banco: BancoArmazem, alocador: Optional[AlocadorLocalizacoes] = None):
        self.banco = banco
        self.alocador = alocador or AlocadorLocalizacoes(banco)

    @auditado("criar_camara")
    def criar(self, nome: str, dimensoes: Any, descricao: Optional[str] = None,
              temperatura_alvo: Optional[float] = None, umidade_alvo: Optional[float] = None,
              provisionar: bool = False,
              politica: Optional[PoliticaCapacidade] = None) -> Camara:
        nome = str(nome or "").strip()
        if not 2 <= len(nome) <= 100:
            raise ValidationError("nome da câmara deve ter entre 2 e 100 caracteres", campo="nome", valor=nome)
        dims = validar_dimensoes(dimensoes)
        if umidade_alvo is not None and not 0 <= float(umidade_alvo) <= 100:
            raise ValidationError("umidade_alvo deve estar entre 0 e 100", campo="umidade_alvo", valor=umidade_alvo)

        with self.banco.transacao("criar_camara") as tx:
            repo = CamaraRepo(tx.conn, tx)
            if repo.obter_por_nome(nome) is not None:
                raise ConflictError(f"Já existe câmara chamada {nome}", "camara", nome)
            try:
                camara_id = repo.inserir(
                    Camara(
                        id=None,
                        nome=nome,
                        dimensoes=dims,
                        descricao=descricao,
                        temperatura_alvo=temperatura_alvo,
                        umidade_alvo=umidade_alvo,
                    )
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError(f"Já existe câmara chamada {nome}", "camara", nome) from exc
            if provisionar:
                self.alocador.provisionar(camara_id, politica=politica, tx=tx)
            camara = repo.obter(camara_id)

        log_system_event("camara_criada", {"camara_id": camara.id, "nome": nome, "provisionada": provisionar})
        return camara

    def provisionar(self, camara_id: int, dimensoes: Any = None,
                    politica: Optional[PoliticaCapacidade] = None,
                    sobrescrever: bool = False) -> ResultadoProvisionamento:
        return self.alocador.provisionar(camara_id, dimensoes, politica, sobrescrever)

    @auditado("alterar_status_camara")
    def alterar_status(self, camara_id: int, status: StatusCamara) -> Camara:
        try:
            status = StatusCamara(getattr(status, "value", status))
        except ValueError:
            raise ValidationError("status de câmara inválido", campo="status", valor=status) from None
        with self.banco.transacao("alterar_status_camara") as tx:
            repo = CamaraRepo(tx.conn, tx)
            if repo.obter(camara_id) is None:
                raise NotFoundError("camara", camara_id)
            repo.atualizar_status(camara_id, status)
            return repo.obter(camara_id)

    def obter(self, camara_id: int) -> Camara:
        with self.banco.leitura() as conn:
            camara = CamaraRepo(conn).obter(camara_id)
        if camara is None:
            raise NotFoundError("camara", camara_id)
        return camara

    def listar(self) -> List[Camara]:
        with self.banco.leitura() as conn:
            return CamaraRepo(conn).listar()

    def arvore(self, camara_id: int) -> Dict[str, Any]:
        """Hierarquia da câmara para a interface (quadra -> lado -> fila -> localizações)."""
        with self.banco.leitura() as conn:
            camara = CamaraRepo(conn).obter(camara_id)
            if camara is None:
                raise NotFoundError("camara", camara_id)
            locs = LocalizacaoRepo(conn).listar_por_camara(camara_id)

        quadras: Dict[int, Dict[str, Dict[int, List[Dict[str, Any]]]]] = {}
        for loc in locs:
            c = loc.coordenada
            fila = quadras.setdefault(c.quadra, {}).setdefault(formatar_lado(c.lado), {}).setdefault(c.fila, [])
            fila.append(
                {
                    "id": loc.id,
                    "codigo": loc.codigo,
                    "andar": c.andar,
                    "ocupada": loc.ocupada,
                    "capacidade_max_kg": loc.capacidade_max_kg,
                    "peso_atual_kg": loc.peso_atual_kg,
                    "nivel_acesso": loc.nivel_acesso,
                }
            )
        return {
            "camara_id": camara.id,
            "nome": camara.nome,
            "status": camara.status.value,
            "quadras": quadras,
        }

    def resumo_ocupacao(self, camara_id: int) -> Dict[str, Any]:
        with self.banco.leitura() as conn:
            if CamaraRepo(conn).obter(camara_id) is None:
                raise NotFoundError("camara", camara_id)
            r = LocalizacaoRepo(conn).resumo(camara_id)
        total = int(r["total"])
        ocupadas = int(r["ocupadas"])
        capacidade = float(r["capacidade_total_kg"])
        peso = float(r["peso_atual_kg"])
        return {
            "camara_id": camara_id,
            "total": total,
            "ocupadas": ocupadas,
            "livres": total - ocupadas,
            "percentual_ocupadas": round(ocupadas / total * 100, 1) if total else 0.0,
            "capacidade_total_kg": round(capacidade, 3),
            "peso_atual_kg": round(peso, 3),
            "percentual_peso": round(peso / capacidade * 100, 1) if capacidade else 0.0,
        }
