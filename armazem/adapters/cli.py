# armazem/adapters/cli.py
"""
CLI administrativa do armazém (Typer).

Comandos principais:
- migrate                          -> aplica migrações e cria views
- camara criar/provisionar/status  -> administração de câmaras
- camara arvore/listar             -> consultas de câmaras e localizações
- produto listar/historico         -> consultas de produtos e do razão
- produto importar <xlsx>          -> cadastra produtos em lote
- rel inventario/vencimentos/ocupacao/movimentacoes -> relatórios tabulares

A CLI é um adaptador: aplica a tabela de capacidades por papel antes de
chamar o núcleo e traduz erros tipados em mensagens.
"""

from __future__ import annotations

import functools
import json
from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd
import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from armazem.adapters.parsers import parse_enum
from armazem.config import DB_PATH, DEFAULTS, ArmazemConfig
from armazem.domain.erros import ArmazemError
from armazem.domain.models import Dimensoes, StatusCamara, StatusProduto, TipoMovimentacao
from armazem.domain.policies import PermissaoNegada, PoliticaCapacidade, exigir_permissao
from armazem.infra.migrations import apply_migrations
from armazem.infra.transacao import BancoArmazem
from armazem.infra.views import create_views
from armazem.usecases.camaras import AdministracaoCamaras
from armazem.usecases.importar_produtos import importar_produtos
from armazem.usecases.produtos import MaquinaEstadosProduto
from armazem.usecases.razao import RazaoMovimentacoes
from armazem.usecases.relatorios import (
    exportar_xlsx,
    relatorio_inventario,
    relatorio_movimentacoes,
    relatorio_ocupacao,
    relatorio_produtos_a_vencer,
)


app = typer.Typer(help="Armazém de Sementes — CLI")
console = Console()

DB_OPTION = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")
JSON_OPTION = typer.Option(False, "--json", help="Saída em JSON")
PAPEL_OPTION = typer.Option("ADMIN", "--papel", help="Papel do usuário (ADMIN | OPERATOR)")
USUARIO_OPTION = typer.Option("admin", "--usuario", help="Identificador do usuário")


# -----------------------
# util
# -----------------------

def _plain(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    return obj


def _registro(obj: Any) -> Dict[str, Any]:
    return _plain(asdict(obj))


def _print_json(obj) -> None:
    """Impressão em JSON (modo --json e fallback)."""
    typer.echo(json.dumps(_plain(obj), ensure_ascii=False, indent=2, default=str))


def _display_table(data: List[Dict[str, Any]], title: str = "Resultado") -> None:
    """Exibe uma lista de dicionários numa tabela Rich."""
    if not data:
        console.print(Panel("Nenhum dado encontrado", title=title, border_style="yellow"))
        return

    table = Table(title=title, box=box.ROUNDED)
    columns = list(data[0].keys())
    for column in columns:
        if column.lower() in ("quantidade", "peso", "peso_total", "capacidade_max_kg", "peso_atual_kg",
                              "capacidade_total_kg", "ocupadas", "livres", "total_localizacoes"):
            table.add_column(column, justify="right")
        elif column.lower().startswith("data") or column == "timestamp":
            table.add_column(column, justify="center")
        else:
            table.add_column(column)

    for row in data:
        values = []
        for col in columns:
            val = row.get(col, "")
            if col in ("status", "classe_validade"):
                values.append(_colorir_status(str(val)))
            elif isinstance(val, float):
                values.append(f"{val:,.2f}".replace(",", "X").replace(".", ",").replace("X", "."))
            elif val is None:
                values.append("")
            else:
                values.append(str(val))
        table.add_row(*values)
    console.print(table)


def _colorir_status(valor: str) -> str:
    cores = {
        "expired": "bold red",
        "critical": "bold red",
        "warning": "bold yellow",
        "good": "bold green",
        "LOCADO": "green",
        "AGUARDANDO_RETIRADA": "yellow",
        "AGUARDANDO_LOCACAO": "yellow",
        "REMOVIDO": "dim",
        "RETIRADO": "dim",
        "maintenance": "yellow",
        "inactive": "dim",
    }
    cor = cores.get(valor)
    return f"[{cor}]{valor}[/]" if cor else valor


def _df_registros(df: pd.DataFrame) -> List[Dict[str, Any]]:
    return df.astype(object).where(pd.notna(df), None).to_dict(orient="records")


def _saida_df(df: pd.DataFrame, title: str, como_json: bool, exportar: Optional[str]) -> None:
    if exportar:
        exportar_xlsx(df, exportar)
        typer.echo(f">> Relatório exportado para: {exportar}")
    if como_json:
        _print_json(_df_registros(df))
    else:
        _display_table(_df_registros(df), title=title)


def _banco(db_path: str) -> BancoArmazem:
    apply_migrations(db_path)
    return BancoArmazem(ArmazemConfig(db_path=db_path))


def tratar_erros(fn):
    """Traduz erros do núcleo (saída 1) e permissões negadas (saída 2) em mensagens."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ArmazemError as exc:
            console.print(Panel(str(exc), title=f"Erro: {exc.categoria}", border_style="red"))
            raise typer.Exit(1) from exc
        except PermissaoNegada as exc:
            console.print(Panel(str(exc), title="Permissão negada", border_style="red"))
            raise typer.Exit(2) from exc

    return wrapper


# -----------------------
# comandos de infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = DB_OPTION):
    """Aplica migrações e recria as views auxiliares."""
    apply_migrations(db_path)
    create_views(db_path)
    typer.echo(f">> Migrações aplicadas e views criadas em: {db_path}")


# -----------------------
# câmaras
# -----------------------

camara_app = typer.Typer(help="Administração de câmaras e localizações.")
app.add_typer(camara_app, name="camara")


@camara_app.command("criar")
@tratar_erros
def cmd_camara_criar(
    nome: str = typer.Argument(..., help="Nome único da câmara"),
    quadras: int = typer.Option(..., help="Quantidade de quadras (1..100)"),
    lados: int = typer.Option(..., help="Quantidade de lados (1..100)"),
    filas: int = typer.Option(..., help="Quantidade de filas (1..100)"),
    andares: int = typer.Option(..., help="Quantidade de andares (1..20)"),
    descricao: Optional[str] = typer.Option(None, help="Descrição"),
    temperatura: Optional[float] = typer.Option(None, help="Temperatura alvo (°C)"),
    umidade: Optional[float] = typer.Option(None, help="Umidade alvo (%)"),
    provisionar: bool = typer.Option(False, "--provisionar", help="Gera as localizações em seguida"),
    papel: str = PAPEL_OPTION,
    como_json: bool = JSON_OPTION,
    db_path: str = DB_OPTION,
):
    """Cadastra uma câmara (opcionalmente já com as localizações)."""
    exigir_permissao(papel, "camara.criar")
    camaras = AdministracaoCamaras(_banco(db_path))
    camara = camaras.criar(
        nome,
        Dimensoes(quadras, lados, filas, andares),
        descricao=descricao,
        temperatura_alvo=temperatura,
        umidade_alvo=umidade,
        provisionar=provisionar,
    )
    if como_json:
        _print_json(_registro(camara))
    else:
        typer.echo(f">> Câmara {camara.nome} criada (id={camara.id}, {camara.dimensoes.total} posições)")


@camara_app.command("provisionar")
@tratar_erros
def cmd_camara_provisionar(
    camara_id: int = typer.Argument(..., help="Id da câmara"),
    capacidade: float = typer.Option(DEFAULTS.capacidade_padrao_kg, help="Capacidade padrão por posição (kg)"),
    variacao: bool = typer.Option(DEFAULTS.variacao_capacidade, help="Varia a capacidade por andar/centralidade"),
    sobrescrever: bool = typer.Option(False, "--sobrescrever", help="Regenera localizações existentes"),
    papel: str = PAPEL_OPTION,
    como_json: bool = JSON_OPTION,
    db_path: str = DB_OPTION,
):
    """Gera (ou regenera) as localizações de uma câmara."""
    exigir_permissao(papel, "camara.provisionar")
    camaras = AdministracaoCamaras(_banco(db_path))
    res = camaras.provisionar(
        camara_id, politica=PoliticaCapacidade(capacidade, variacao), sobrescrever=sobrescrever
    )
    if como_json:
        _print_json(asdict(res))
    else:
        typer.echo(
            f">> {res.criadas} localizações criadas ({res.removidas} removidas), "
            f"capacidade total {res.capacidade_total_kg:.0f} kg"
        )


@camara_app.command("status")
@tratar_erros
def cmd_camara_status(
    camara_id: int = typer.Argument(..., help="Id da câmara"),
    status: str = typer.Argument(..., help="active | maintenance | inactive"),
    papel: str = PAPEL_OPTION,
    db_path: str = DB_OPTION,
):
    """Altera o status operacional da câmara."""
    exigir_permissao(papel, "camara.status")
    camaras = AdministracaoCamaras(_banco(db_path))
    camara = camaras.alterar_status(camara_id, parse_enum(StatusCamara, status, "status"))
    typer.echo(f">> Câmara {camara.nome}: {camara.status.value}")


@camara_app.command("listar")
@tratar_erros
def cmd_camara_listar(como_json: bool = JSON_OPTION, db_path: str = DB_OPTION):
    """Lista câmaras com resumo de ocupação."""
    camaras = AdministracaoCamaras(_banco(db_path))
    linhas = []
    for c in camaras.listar():
        resumo = camaras.resumo_ocupacao(c.id)
        linhas.append(
            {
                "id": c.id,
                "nome": c.nome,
                "status": c.status.value,
                "dimensoes": f"{c.dimensoes.quadras}x{c.dimensoes.lados}x{c.dimensoes.filas}x{c.dimensoes.andares}",
                "total_localizacoes": resumo["total"],
                "ocupadas": resumo["ocupadas"],
                "livres": resumo["livres"],
            }
        )
    if como_json:
        _print_json(linhas)
    else:
        _display_table(linhas, title="Câmaras")


@camara_app.command("arvore")
@tratar_erros
def cmd_camara_arvore(
    camara_id: int = typer.Argument(..., help="Id da câmara"),
    como_json: bool = JSON_OPTION,
    db_path: str = DB_OPTION,
):
    """Mostra a hierarquia quadra → lado → fila → localizações."""
    arvore = AdministracaoCamaras(_banco(db_path)).arvore(camara_id)
    if como_json:
        _print_json(arvore)
        return
    linhas = []
    for quadra, lados in arvore["quadras"].items():
        for lado, filas in lados.items():
            for fila, locs in filas.items():
                ocupadas = sum(1 for loc in locs if loc["ocupada"])
                linhas.append(
                    {
                        "quadra": quadra,
                        "lado": lado,
                        "fila": fila,
                        "posicoes": len(locs),
                        "ocupadas": ocupadas,
                        "livres": len(locs) - ocupadas,
                    }
                )
    _display_table(linhas, title=f"Câmara {arvore['nome']} ({arvore['status']})")


# -----------------------
# produtos
# -----------------------

produto_app = typer.Typer(help="Consultas e importação de produtos.")
app.add_typer(produto_app, name="produto")


@produto_app.command("listar")
@tratar_erros
def cmd_produto_listar(
    status: Optional[List[str]] = typer.Option(None, "--status", help="Filtra por status (repetível)"),
    camara_id: Optional[int] = typer.Option(None, "--camara", help="Filtra por câmara"),
    como_json: bool = JSON_OPTION,
    db_path: str = DB_OPTION,
):
    """Lista produtos."""
    filtro = [parse_enum(StatusProduto, s, "status") for s in status] if status else None
    produtos = MaquinaEstadosProduto(_banco(db_path)).listar(status=filtro, camara_id=camara_id)
    linhas = [
        {
            "id": p.id,
            "nome": p.nome,
            "lote": p.lote,
            "quantidade": p.quantidade,
            "peso_total": p.peso_total,
            "status": p.status.value,
            "localizacao_id": p.localizacao_id,
            "data_validade": p.data_validade,
        }
        for p in produtos
    ]
    if como_json:
        _print_json(linhas)
    else:
        _display_table(linhas, title="Produtos")


@produto_app.command("historico")
@tratar_erros
def cmd_produto_historico(
    produto_id: int = typer.Argument(..., help="Id do produto"),
    como_json: bool = JSON_OPTION,
    db_path: str = DB_OPTION,
):
    """Mostra o histórico de movimentações do produto."""
    banco = _banco(db_path)
    MaquinaEstadosProduto(banco).obter(produto_id)
    linhas = [
        {
            "sequencia": m.sequencia,
            "timestamp": m.timestamp,
            "tipo": m.tipo.value,
            "operacao": m.operacao,
            "quantidade": m.quantidade,
            "peso": m.peso,
            "origem": m.localizacao_origem_id,
            "destino": m.localizacao_destino_id,
            "usuario": m.usuario_id,
            "motivo": m.motivo,
        }
        for m in RazaoMovimentacoes(banco).por_produto(produto_id)
    ]
    if como_json:
        _print_json(linhas)
    else:
        _display_table(linhas, title=f"Histórico do produto {produto_id}")


@produto_app.command("importar")
@tratar_erros
def cmd_produto_importar(
    path: str = typer.Argument(..., help="Caminho do XLSX de PRODUTOS"),
    camara_id: Optional[int] = typer.Option(None, "--camara", help="Câmara padrão para códigos de localização"),
    usuario: str = USUARIO_OPTION,
    papel: str = PAPEL_OPTION,
    como_json: bool = JSON_OPTION,
    db_path: str = DB_OPTION,
):
    """Cadastra produtos em lote a partir de um XLSX."""
    exigir_permissao(papel, "produto.criar")
    info = importar_produtos(path, MaquinaEstadosProduto(_banco(db_path)), usuario, camara_id=camara_id)
    if como_json:
        _print_json(info)
        return
    typer.echo(f">> {info['sucessos']} de {info['total']} produtos importados")
    _display_table(info["erros"], title="Linhas com erro")


# -----------------------
# relatórios
# -----------------------

rel_app = typer.Typer(help="Relatórios do armazém")
app.add_typer(rel_app, name="rel")

EXPORTAR_OPTION = typer.Option(None, "--exportar", help="Grava também em XLSX neste caminho")


@rel_app.command("inventario")
@tratar_erros
def rel_inventario(
    camara_id: Optional[int] = typer.Option(None, "--camara", help="Filtra por câmara"),
    todos: bool = typer.Option(False, "--todos", help="Inclui produtos retirados/removidos"),
    exportar: Optional[str] = EXPORTAR_OPTION,
    como_json: bool = JSON_OPTION,
    db_path: str = DB_OPTION,
):
    """Inventário atual com localização e câmara."""
    apply_migrations(db_path)
    df = relatorio_inventario(db_path=db_path, camara_id=camara_id, incluir_terminais=todos)
    _saida_df(df, "Inventário", como_json, exportar)


@rel_app.command("vencimentos")
@tratar_erros
def rel_vencimentos(
    janela_dias: int = typer.Option(DEFAULTS.dias_alerta_validade, help="Dias até o vencimento"),
    exportar: Optional[str] = EXPORTAR_OPTION,
    como_json: bool = JSON_OPTION,
    db_path: str = DB_OPTION,
):
    """Produtos próximos ao vencimento (inclui vencidos)."""
    apply_migrations(db_path)
    df = relatorio_produtos_a_vencer(db_path=db_path, janela_dias=janela_dias)
    _saida_df(df, f"Produtos a Vencer (Próximos {janela_dias} dias)", como_json, exportar)


@rel_app.command("ocupacao")
@tratar_erros
def rel_ocupacao(
    exportar: Optional[str] = EXPORTAR_OPTION,
    como_json: bool = JSON_OPTION,
    db_path: str = DB_OPTION,
):
    """Ocupação por câmara."""
    apply_migrations(db_path)
    _saida_df(relatorio_ocupacao(db_path=db_path), "Ocupação por Câmara", como_json, exportar)


@rel_app.command("movimentacoes")
@tratar_erros
def rel_movimentacoes(
    inicio: Optional[str] = typer.Option(None, help="Data inicial (YYYY-MM-DD)"),
    fim: Optional[str] = typer.Option(None, help="Data final (YYYY-MM-DD)"),
    tipo: Optional[str] = typer.Option(None, help="entry | exit | transfer | adjustment"),
    exportar: Optional[str] = EXPORTAR_OPTION,
    como_json: bool = JSON_OPTION,
    db_path: str = DB_OPTION,
):
    """Razão de movimentações no período."""
    apply_migrations(db_path)
    tipo_mov = parse_enum(TipoMovimentacao, tipo, "tipo") if tipo else None
    df = relatorio_movimentacoes(db_path=db_path, inicio=inicio, fim=fim, tipo=tipo_mov)
    _saida_df(df, "Movimentações", como_json, exportar)


def main():
    app()


if __name__ == "__main__":
    main()
