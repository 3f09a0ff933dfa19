# varejo/adapters/cli.py
"""
CLI das operações de varejo (Typer).

Grupos de comandos:
- migrate                      -> aplica migrações e cria views
- logs                         -> últimas linhas dos arquivos de log
- params set/get/show          -> regras de negócio (tabela params)
- aparelho ...                 -> estoque por IMEI e triagem de pendentes
- nota ...                     -> notas de entrada (pagamento/conferência)
- os ...                       -> ordens de serviço
- garantia ...                 -> garantias e tratativas
- retirada ...                 -> retirada de peças
- solicitacao ...              -> solicitações de peças e lotes por fornecedor
- nota-assistencia ...         -> pagamento das notas de peças (lotes e consignação)
- consignacao ...              -> peças consignadas: consumo, acerto e devolução
- venda ...                    -> vendas com fluxo de conferência
- fiado ...                    -> parcelas de fiado
- financeiro ...               -> contas, transferências, despesas, razão
- acessorio ...                -> estoque de acessórios
- rel ...                      -> relatórios gerenciais
- exportar ...                 -> CSV das listagens
"""

from __future__ import annotations

import functools
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from varejo.adapters.exportacao import (
    exportar_acessorios_csv,
    exportar_fluxo_vendas_csv,
    exportar_garantias_csv,
    exportar_os_csv,
    exportar_parcelas_csv,
)
from varejo.adapters.parsers import formatar_brl, parse_valor_brl
from varejo.config import DB_PATH, DEFAULTS
from varejo.domain.erros import VarejoError
from varejo.infra.logger import LOG_FILES, get_log_summary
from varejo.infra.migrations import apply_migrations
from varejo.infra.repositories import ParamsRepo
from varejo.infra.views import create_views
from varejo.usecases import (
    acessorios,
    consignacao,
    estoque_aparelhos,
    fiado,
    financeiro,
    garantias,
    notas_assistencia,
    notas_entrada,
    ordens_servico,
    relatorios,
    retirada_pecas,
    solicitacao_pecas,
    vendas,
)


app = typer.Typer(help="Operações de Varejo — CLI")
console = Console()

DbOpt = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")


# -----------------------
# util
# -----------------------

def _trata_erros(func):
    """Erros de negócio viram um painel vermelho e código de saída 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except VarejoError as e:
            console.print(Panel(str(e), title="Erro", border_style="red"))
            raise typer.Exit(code=1)
    return wrapper


def _brl(valor: Optional[str]) -> Optional[Decimal]:
    """Callback dos parâmetros monetários: aceita '1.234,56', 'R$ 350' ou '99.90'."""
    if valor is None:
        return None
    convertido = parse_valor_brl(valor)
    if convertido is None:
        raise typer.BadParameter(f"Valor monetário inválido: {valor}")
    return convertido


def _fmt(val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, Decimal):
        return formatar_brl(val)
    if isinstance(val, float):
        return f"{val:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    if isinstance(val, datetime):
        return val.strftime("%d/%m/%Y")
    return str(val)


def _print_json(obj) -> None:
    typer.echo(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def _display_table(data: Any, title: str = "Resultado") -> None:
    """Exibe listas de dicts, registros ou relatórios (colunas, linhas, msg) com Rich."""
    if not data:
        console.print(Panel("Nenhum dado encontrado", title=title, border_style="yellow"))
        return

    # Relatório tabular: (colunas, linhas, mensagem)
    if isinstance(data, tuple) and len(data) == 3:
        columns, rows, msg = data
        if msg:
            console.print(Panel(msg, title=title, border_style="yellow"))
            return
        table = Table(title=title, box=box.ROUNDED)
        for col in columns:
            table.add_column(str(col))
        for row in rows:
            table.add_row(*[_fmt(v) for v in row])
        console.print(table)
        return

    # Lista de registros
    if isinstance(data, list) and isinstance(data[0], dict):
        table = Table(title=title, box=box.ROUNDED)
        columns = [k for k in data[0].keys() if not isinstance(data[0][k], (list, dict))]
        for column in columns:
            if column.startswith(("valor", "total", "saldo", "custo")) or column in ("quantidade", "lucro"):
                table.add_column(column, justify="right")
            else:
                table.add_column(column)
        for row in data:
            table.add_row(*[_fmt(row.get(col)) for col in columns])
        console.print(table)
        return

    # Registro único: campos simples em Campo/Valor, listas aninhadas em tabelas próprias
    if isinstance(data, dict):
        table = Table(title=title, box=box.ROUNDED)
        table.add_column("Campo")
        table.add_column("Valor")
        aninhados = []
        for chave, valor in data.items():
            if isinstance(valor, list):
                aninhados.append((chave, valor))
            elif isinstance(valor, dict):
                table.add_row(chave, json.dumps(valor, ensure_ascii=False, default=str))
            else:
                table.add_row(chave, _fmt(valor))
        console.print(table)
        for chave, valor in aninhados:
            if valor and isinstance(valor[0], dict):
                _display_table(valor, title=chave)
        return

    _print_json(data)


def _ok(msg: str) -> None:
    console.print(f"[bold green]>>[/] {msg}")


# -----------------------
# comandos de infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = DbOpt):
    """Aplica migrações e recria as views auxiliares."""
    apply_migrations(db_path)
    create_views(db_path)
    typer.echo(f">> Migrações aplicadas e views criadas em: {db_path}")


@app.command("logs")
def cmd_logs(
    tipo: str = typer.Argument("transactions", help=" | ".join(LOG_FILES)),
    linhas: int = typer.Option(20, help="Quantidade de linhas mais recentes"),
):
    """Mostra o final de um arquivo de log (habilite com VAREJO_LOG=1)."""
    typer.echo(get_log_summary(tipo, linhas))


params_app = typer.Typer(help="Gerenciar regras de negócio (tabela params).")
app.add_typer(params_app, name="params")


@params_app.command("set")
@_trata_erros
def cmd_params_set(
    pares: List[str] = typer.Argument(..., help="chave=valor (ex.: comissao_loja_fisica=0.08)"),
    db_path: str = DbOpt,
):
    """Define parâmetros (apenas os informados são alterados)."""
    validos = set(DEFAULTS.__dataclass_fields__)
    items = []
    for par in pares:
        chave, sep, valor = par.partition("=")
        if not sep or chave not in validos:
            typer.echo(f"Parâmetro inválido: {par}. Válidos: {', '.join(sorted(validos))}")
            raise typer.Exit(code=1)
        items.append((chave, valor))
    ParamsRepo(db_path).definir(items)
    typer.echo(">> Parâmetros atualizados.")


@params_app.command("get")
def cmd_params_get(
    chave: str = typer.Argument(..., help="Ex.: tolerancia_divergencia | markup_peca | nivel_servico"),
    db_path: str = DbOpt,
):
    """Mostra um parâmetro específico."""
    val = ParamsRepo(db_path).get(chave)
    typer.echo("(None)" if val is None else val)


@params_app.command("show")
def cmd_params_show(db_path: str = DbOpt):
    """Exibe as regras efetivas (params sobre os valores padrão)."""
    efetivas = ParamsRepo(db_path).regras()
    table = Table(title="Parâmetros do Sistema")
    table.add_column("Parâmetro")
    table.add_column("Valor Atual")
    table.add_column("Valor Padrão")
    for nome in DEFAULTS.__dataclass_fields__:
        table.add_row(nome, str(getattr(efetivas, nome)), str(getattr(DEFAULTS, nome)))
    console.print(table)
    console.print(f"[dim]Banco de dados: {db_path}[/dim]")


# -----------------------
# aparelhos
# -----------------------

aparelho_app = typer.Typer(help="Estoque de aparelhos (IMEI) e triagem.")
app.add_typer(aparelho_app, name="aparelho")


@aparelho_app.command("cadastrar")
@_trata_erros
def cmd_aparelho_cadastrar(
    imei: str = typer.Argument(...),
    marca: str = typer.Option(..., help="Ex.: Apple"),
    modelo: str = typer.Option(..., help="Ex.: iPhone 15 Pro"),
    loja: str = typer.Option(..., help="ID da loja"),
    custo: str = typer.Option(..., help="Valor de custo (ex.: 4.500,00)", callback=_brl),
    categoria: str = typer.Option("Novo", help="Novo | Seminovo"),
    cor: Optional[str] = typer.Option(None),
    capacidade: Optional[str] = typer.Option(None),
    bateria: Optional[int] = typer.Option(None, help="Saúde da bateria (%)"),
    venda_sugerida: Optional[str] = typer.Option(None, callback=_brl),
    db_path: str = DbOpt,
):
    """Cadastra um aparelho no estoque (IMEI inativo é reaproveitado)."""
    res = estoque_aparelhos.cadastrar_aparelho(
        imei, marca, modelo, loja, custo, categoria=categoria, cor=cor, capacidade=capacidade,
        saude_bateria=bateria, valor_venda_sugerido=venda_sugerida, db_path=db_path,
    )
    _display_table(res, title="Aparelho Cadastrado")


@aparelho_app.command("consultar")
@_trata_erros
def cmd_aparelho_consultar(imei: str = typer.Argument(...), db_path: str = DbOpt):
    """Dados do aparelho e sua timeline."""
    _display_table(estoque_aparelhos.consultar_imei(imei, db_path), title=f"Aparelho {imei}")


@aparelho_app.command("listar")
def cmd_aparelho_listar(
    loja: Optional[str] = typer.Option(None),
    status: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(estoque_aparelhos.listar_aparelhos(loja, status, db_path), title="Aparelhos")


@aparelho_app.command("movimentar")
@_trata_erros
def cmd_aparelho_movimentar(
    imei: str = typer.Argument(...),
    destino: str = typer.Option(..., help="Loja de destino"),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    """Transfere um aparelho disponível para outra loja."""
    _display_table(estoque_aparelhos.movimentar_aparelho(imei, destino, responsavel, db_path), title="Movimentação")


@aparelho_app.command("pendentes")
def cmd_aparelho_pendentes(status: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _display_table(estoque_aparelhos.listar_pendentes(status, db_path), title="Produtos Pendentes")


@aparelho_app.command("parecer-estoque")
@_trata_erros
def cmd_parecer_estoque(
    pendente_id: str = typer.Argument(...),
    parecer: str = typer.Option(..., help="Texto do parecer do estoque"),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(estoque_aparelhos.salvar_parecer_estoque(pendente_id, parecer, responsavel, db_path),
                   title="Parecer Estoque")


@aparelho_app.command("parecer-assistencia")
@_trata_erros
def cmd_parecer_assistencia(
    pendente_id: str = typer.Argument(...),
    parecer: str = typer.Option(..., help="Texto do parecer da assistência"),
    responsavel: str = typer.Option(...),
    peca: List[str] = typer.Option([], help="descricao=valor (repetível)"),
    db_path: str = DbOpt,
):
    pecas = []
    for p in peca:
        descricao, _, valor = p.rpartition("=")
        pecas.append({"descricao": descricao, "valor": valor})
    res = estoque_aparelhos.salvar_parecer_assistencia(pendente_id, parecer, responsavel, pecas or None, db_path)
    _display_table(res, title="Parecer Assistência")


@aparelho_app.command("liberar")
@_trata_erros
def cmd_aparelho_liberar(
    pendente_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    """Libera o produto pendente para venda (Disponivel)."""
    _display_table(estoque_aparelhos.liberar_produto_pendente(pendente_id, responsavel, db_path),
                   title="Produto Liberado")


# -----------------------
# notas de entrada
# -----------------------

nota_app = typer.Typer(help="Notas de entrada (fornecedor -> estoque).")
app.add_typer(nota_app, name="nota")


@nota_app.command("criar")
@_trata_erros
def cmd_nota_criar(
    fornecedor: str = typer.Option(...),
    loja: str = typer.Option(...),
    tipo_pagamento: str = typer.Option(..., help="Antecipado | Parcial | Pos"),
    valor_total: Optional[str] = typer.Option(None, callback=_brl),
    qtd: int = typer.Option(0, help="Quantidade informada de itens"),
    numero: Optional[str] = typer.Option(None, help="Número da NF"),
    responsavel: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    res = notas_entrada.criar_nota(fornecedor, loja, tipo_pagamento, valor_total, qtd, numero, responsavel,
                                   db_path=db_path)
    _display_table(res, title="Nota Criada")


@nota_app.command("produtos")
@_trata_erros
def cmd_nota_produtos(
    nota_id: str = typer.Argument(...),
    planilha: str = typer.Argument(..., help="XLSX com os produtos da nota"),
    responsavel: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    """Cadastra os produtos da nota a partir de uma planilha."""
    res = notas_entrada.cadastrar_produtos_planilha(nota_id, planilha, responsavel, db_path=db_path)
    _display_table(res, title="Produtos Cadastrados")


@nota_app.command("pagar")
@_trata_erros
def cmd_nota_pagar(
    nota_id: str = typer.Argument(...),
    valor: str = typer.Option(..., callback=_brl),
    conta: str = typer.Option(..., help="Conta de origem (CTA-xxx)"),
    forma: str = typer.Option("Pix"),
    responsavel: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    res = notas_entrada.registrar_pagamento(nota_id, valor, conta, forma, responsavel, db_path=db_path)
    _display_table(res, title="Pagamento Registrado")


@nota_app.command("conferir")
@_trata_erros
def cmd_nota_conferir(
    nota_id: str = typer.Argument(...),
    produto_id: int = typer.Argument(...),
    imei: Optional[str] = typer.Option(None, help="Obrigatório para aparelhos"),
    quantidade: int = typer.Option(1),
    responsavel: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    res = notas_entrada.conferir_produto(nota_id, produto_id, imei, quantidade, responsavel, db_path=db_path)
    _display_table(res, title="Conferência")


@nota_app.command("resolver")
@_trata_erros
def cmd_nota_resolver(
    nota_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    justificativa: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(notas_entrada.resolver_divergencia(nota_id, responsavel, justificativa, db_path=db_path),
                   title="Divergência Resolvida")


@nota_app.command("finalizar")
@_trata_erros
def cmd_nota_finalizar(
    nota_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    forcar: bool = typer.Option(False, help="Finalização forçada (perfil Gestor)"),
    perfil: str = typer.Option("Financeiro"),
    db_path: str = DbOpt,
):
    res = notas_entrada.finalizar_nota(nota_id, responsavel, forcar, perfil, db_path=db_path)
    _display_table(res, title="Nota Finalizada")


@nota_app.command("mostrar")
@_trata_erros
def cmd_nota_mostrar(nota_id: str = typer.Argument(...), db_path: str = DbOpt):
    _display_table(notas_entrada.obter_nota(nota_id, db_path), title=f"Nota {nota_id}")


@nota_app.command("listar")
def cmd_nota_listar(status: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _display_table(notas_entrada.listar_notas(status, db_path), title="Notas de Entrada")


# -----------------------
# ordens de serviço
# -----------------------

os_app = typer.Typer(help="Ordens de serviço da assistência.")
app.add_typer(os_app, name="os")


@os_app.command("abrir")
@_trata_erros
def cmd_os_abrir(
    cliente: str = typer.Option(...),
    loja: str = typer.Option(...),
    setor: str = typer.Option(..., help="GARANTIA | ASSISTÊNCIA | TROCA"),
    descricao: str = typer.Option(...),
    imei: Optional[str] = typer.Option(None),
    tecnico: Optional[str] = typer.Option(None),
    telefone: Optional[str] = typer.Option(None),
    modelo: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    res = ordens_servico.abrir_os(cliente, loja, setor, descricao, imei, tecnico, telefone, modelo, db_path=db_path)
    _display_table(res, title="OS Aberta")


@os_app.command("peca")
@_trata_erros
def cmd_os_peca(
    os_id: str = typer.Argument(...),
    descricao: str = typer.Option(...),
    valor: str = typer.Option(..., callback=_brl),
    desconto: str = typer.Option("0", help="Percentual de desconto"),
    estoque: Optional[str] = typer.Option(None, help="ID da peça em estoque (PEC-xxxx)"),
    fornecedor: Optional[str] = typer.Option(None, help="Fornecedor (peça terceirizada)"),
    db_path: str = DbOpt,
):
    peca = {
        "descricao": descricao,
        "valor": valor,
        "percentual": desconto,
        "peca_estoque_id": estoque,
        "terceirizado": bool(fornecedor),
        "fornecedor": fornecedor,
    }
    _display_table(ordens_servico.adicionar_peca_os(os_id, peca, db_path=db_path), title="Peça Adicionada")


@os_app.command("status")
@_trata_erros
def cmd_os_status(
    os_id: str = typer.Argument(...),
    novo_status: str = typer.Argument(...),
    responsavel: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(ordens_servico.alterar_status_os(os_id, novo_status, responsavel, db_path), title="OS")


@os_app.command("pagar")
@_trata_erros
def cmd_os_pagar(
    os_id: str = typer.Argument(...),
    meio: str = typer.Option(...),
    valor: str = typer.Option(..., callback=_brl),
    conta: Optional[str] = typer.Option(None),
    parcelas: int = typer.Option(1),
    db_path: str = DbOpt,
):
    res = ordens_servico.registrar_pagamento_os(os_id, meio, valor, conta, parcelas, db_path)
    _display_table(res, title="Pagamento da OS")


@os_app.command("concluir")
@_trata_erros
def cmd_os_concluir(
    os_id: str = typer.Argument(...),
    responsavel: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(ordens_servico.concluir_os(os_id, responsavel, db_path), title="OS Concluída")


@os_app.command("cancelar")
@_trata_erros
def cmd_os_cancelar(
    os_id: str = typer.Argument(...),
    responsavel: Optional[str] = typer.Option(None),
    motivo: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(ordens_servico.cancelar_os(os_id, responsavel, motivo, db_path), title="OS Cancelada")


@os_app.command("mostrar")
@_trata_erros
def cmd_os_mostrar(os_id: str = typer.Argument(...), db_path: str = DbOpt):
    _display_table(ordens_servico.obter_os(os_id, db_path), title=f"OS {os_id}")


@os_app.command("listar")
def cmd_os_listar(
    status: Optional[str] = typer.Option(None),
    loja: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(ordens_servico.listar_os(status, loja, db_path), title="Ordens de Serviço")


# -----------------------
# garantias
# -----------------------

garantia_app = typer.Typer(help="Garantias e tratativas.")
app.add_typer(garantia_app, name="garantia")


@garantia_app.command("registrar")
@_trata_erros
def cmd_garantia_registrar(
    imei: str = typer.Argument(...),
    categoria: str = typer.Option("Novo", help="Novo | Seminovo"),
    modelo: Optional[str] = typer.Option(None),
    cliente: Optional[str] = typer.Option(None),
    loja: Optional[str] = typer.Option(None),
    inicio: Optional[str] = typer.Option(None, help="Data de início (YYYY-MM-DD)"),
    meses: Optional[int] = typer.Option(None),
    db_path: str = DbOpt,
):
    res = garantias.registrar_garantia(imei, categoria, modelo, cliente, loja, inicio, meses=meses, db_path=db_path)
    _display_table(res, title="Garantia Registrada")


@garantia_app.command("tratativa")
@_trata_erros
def cmd_garantia_tratativa(
    garantia_id: str = typer.Argument(...),
    tipo: str = typer.Option(..., help="Direcionado Apple | Encaminhado Assistência | "
                                       "Assistência + Empréstimo | Troca Direta"),
    descricao: str = typer.Option(...),
    responsavel: str = typer.Option(...),
    emprestimo: Optional[str] = typer.Option(None, help="IMEI do aparelho emprestado"),
    troca: Optional[str] = typer.Option(None, help="IMEI do aparelho de troca"),
    tecnico: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    res = garantias.abrir_tratativa(garantia_id, tipo, descricao, responsavel, emprestimo, troca, tecnico, db_path)
    _display_table(res, title="Tratativa Aberta")


@garantia_app.command("concluir-tratativa")
@_trata_erros
def cmd_garantia_concluir(
    tratativa_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    descricao: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(garantias.concluir_tratativa(tratativa_id, responsavel, descricao, db_path),
                   title="Tratativa Concluída")


@garantia_app.command("listar")
def cmd_garantia_listar(status: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _display_table(garantias.listar_garantias(status, db_path), title="Garantias")


@garantia_app.command("expirando")
def cmd_garantia_expirando(db_path: str = DbOpt):
    """Garantias ativas que vencem em até 7 dias (urgente) e de 8 a 30 dias (atenção)."""
    res = garantias.listar_expirando(db_path=db_path)
    _display_table(res["urgente"], title="Expirando em até 7 dias")
    _display_table(res["atencao"], title="Expirando em 8 a 30 dias")


@garantia_app.command("contadores")
def cmd_garantia_contadores(db_path: str = DbOpt):
    _display_table(garantias.contadores(db_path=db_path), title="Tratativas")


@garantia_app.command("atualizar")
def cmd_garantia_atualizar(db_path: str = DbOpt):
    """Marca como 'Expirada' as garantias ativas vencidas."""
    _ok(f"{garantias.atualizar_expiradas(db_path=db_path)} garantia(s) expirada(s).")


@garantia_app.command("timeline")
@_trata_erros
def cmd_garantia_timeline(garantia_id: str = typer.Argument(...), db_path: str = DbOpt):
    _display_table(garantias.timeline_garantia(garantia_id, db_path), title=f"Timeline {garantia_id}")


# -----------------------
# retirada de peças
# -----------------------

retirada_app = typer.Typer(help="Retirada de peças (desmonte).")
app.add_typer(retirada_app, name="retirada")


@retirada_app.command("solicitar")
@_trata_erros
def cmd_retirada_solicitar(
    imei: str = typer.Argument(...),
    motivo: str = typer.Option(...),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(retirada_pecas.solicitar_retirada(imei, motivo, responsavel, db_path=db_path),
                   title="Retirada Solicitada")


@retirada_app.command("iniciar")
@_trata_erros
def cmd_retirada_iniciar(
    retirada_id: str = typer.Argument(...),
    tecnico: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(retirada_pecas.iniciar_desmonte(retirada_id, tecnico, db_path), title="Desmonte Iniciado")


@retirada_app.command("peca")
@_trata_erros
def cmd_retirada_peca(
    retirada_id: str = typer.Argument(...),
    nome: str = typer.Option(...),
    valor: str = typer.Option(..., callback=_brl),
    quantidade: int = typer.Option(1),
    responsavel: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    peca = {"nome": nome, "valor": valor, "quantidade": quantidade}
    item_id = retirada_pecas.adicionar_peca_retirada(retirada_id, peca, responsavel, db_path)
    _ok(f"Peça adicionada (item {item_id}).")
    _display_table(retirada_pecas.validar_custo(retirada_id, db_path), title="Validação de Custo")


@retirada_app.command("finalizar")
@_trata_erros
def cmd_retirada_finalizar(
    retirada_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(retirada_pecas.finalizar_retirada(retirada_id, responsavel, db_path), title="Retirada Concluída")


@retirada_app.command("cancelar")
@_trata_erros
def cmd_retirada_cancelar(
    retirada_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    motivo: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(retirada_pecas.cancelar_retirada(retirada_id, responsavel, motivo, db_path),
                   title="Retirada Cancelada")


@retirada_app.command("listar")
def cmd_retirada_listar(status: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _display_table(retirada_pecas.listar_retiradas(status, db_path), title="Retiradas de Peças")


# -----------------------
# solicitação de peças
# -----------------------

solicitacao_app = typer.Typer(help="Solicitações de peças para OS e lotes por fornecedor.")
app.add_typer(solicitacao_app, name="solicitacao")


@solicitacao_app.command("solicitar")
@_trata_erros
def cmd_solicitacao_solicitar(
    os_id: str = typer.Argument(...),
    peca: str = typer.Option(...),
    quantidade: int = typer.Option(1),
    justificativa: Optional[str] = typer.Option(None),
    solicitante: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    res = solicitacao_pecas.solicitar_peca(os_id, peca, quantidade, justificativa, solicitante, db_path)
    _display_table(res, title="Peça Solicitada")


@solicitacao_app.command("aprovar")
@_trata_erros
def cmd_solicitacao_aprovar(
    sol_id: str = typer.Argument(...),
    fornecedor: str = typer.Option(...),
    valor: str = typer.Option(..., callback=_brl),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    res = solicitacao_pecas.aprovar_solicitacao(sol_id, fornecedor, valor, responsavel, db_path)
    _display_table(res, title="Solicitação Aprovada")


@solicitacao_app.command("rejeitar")
@_trata_erros
def cmd_solicitacao_rejeitar(
    sol_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    motivo: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    res = solicitacao_pecas.rejeitar_solicitacao(sol_id, responsavel, motivo, db_path)
    _display_table(res, title="Solicitação Rejeitada")


@solicitacao_app.command("lote")
@_trata_erros
def cmd_solicitacao_lote(
    solicitacoes: List[str] = typer.Argument(..., help="IDs SOL-xxx aprovadas"),
    fornecedor: str = typer.Option(...),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    res = solicitacao_pecas.criar_lote_pecas(fornecedor, solicitacoes, responsavel, db_path)
    _display_table(res, title="Lote Criado")


@solicitacao_app.command("enviar")
@_trata_erros
def cmd_solicitacao_enviar(
    lote_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(solicitacao_pecas.enviar_lote_pecas(lote_id, responsavel, db_path), title="Lote Enviado")


@solicitacao_app.command("listar")
def cmd_solicitacao_listar(
    status: Optional[str] = typer.Option(None),
    os_id: Optional[str] = typer.Option(None, "--os"),
    db_path: str = DbOpt,
):
    _display_table(solicitacao_pecas.listar_solicitacoes(status, os_id, db_path=db_path), title="Solicitações")


@solicitacao_app.command("lotes")
def cmd_solicitacao_lotes(status: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _display_table(solicitacao_pecas.listar_lotes_pecas(status, db_path), title="Lotes de Peças")


@solicitacao_app.command("mostrar-lote")
@_trata_erros
def cmd_solicitacao_mostrar_lote(lote_id: str = typer.Argument(...), db_path: str = DbOpt):
    _display_table(solicitacao_pecas.obter_lote_pecas(lote_id, db_path), title=f"Lote {lote_id}")


# -----------------------
# notas de assistência
# -----------------------

nota_assist_app = typer.Typer(help="Notas de assistência (pagamento a fornecedores de peças).")
app.add_typer(nota_assist_app, name="nota-assistencia")


@nota_assist_app.command("pagar")
@_trata_erros
def cmd_nota_assist_pagar(
    nota_id: str = typer.Argument(...),
    conta: str = typer.Option(...),
    responsavel: str = typer.Option(...),
    forma: Optional[str] = typer.Option(None, help="Forma de pagamento"),
    db_path: str = DbOpt,
):
    res = notas_assistencia.finalizar_nota_assistencia(nota_id, conta, responsavel, forma, db_path)
    _display_table(res, title="Nota de Assistência Paga")


@nota_assist_app.command("listar")
def cmd_nota_assist_listar(
    status: Optional[str] = typer.Option(None),
    origem: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(notas_assistencia.listar_notas_assistencia(status, origem, db_path), title="Notas de Assistência")


@nota_assist_app.command("mostrar")
@_trata_erros
def cmd_nota_assist_mostrar(nota_id: str = typer.Argument(...), db_path: str = DbOpt):
    _display_table(notas_assistencia.obter_nota_assistencia(nota_id, db_path), title=f"Nota {nota_id}")


# -----------------------
# consignação
# -----------------------

consignacao_app = typer.Typer(help="Lotes de peças consignadas por fornecedor.")
app.add_typer(consignacao_app, name="consignacao")


@consignacao_app.command("criar")
@_trata_erros
def cmd_consignacao_criar(
    arquivo: str = typer.Argument(..., help="JSON com fornecedor, responsavel e itens"),
    db_path: str = DbOpt,
):
    """Cria um lote consignado descrito num arquivo JSON."""
    with open(arquivo, "r", encoding="utf-8") as f:
        dados = json.load(f)
    res = consignacao.criar_lote_consignacao(dados.get("fornecedor"), dados.get("itens") or [],
                                             dados.get("responsavel"), db_path)
    _display_table(res, title="Lote Consignado Criado")


@consignacao_app.command("transferir")
@_trata_erros
def cmd_consignacao_transferir(
    lote_id: str = typer.Argument(...),
    item_id: str = typer.Argument(...),
    loja: str = typer.Option(..., help="Loja de destino"),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(consignacao.transferir_item(lote_id, item_id, loja, responsavel, db_path), title="Transferência")


@consignacao_app.command("acerto")
@_trata_erros
def cmd_consignacao_acerto(
    lote_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(consignacao.iniciar_acerto(lote_id, responsavel, db_path), title="Acerto de Contas")


@consignacao_app.command("pagamento")
@_trata_erros
def cmd_consignacao_pagamento(
    lote_id: str = typer.Argument(...),
    itens: List[str] = typer.Argument(..., help="IDs CONS-ITEM-xxx consumidos"),
    responsavel: str = typer.Option(...),
    forma: Optional[str] = typer.Option(None, help="Forma de pagamento"),
    db_path: str = DbOpt,
):
    res = consignacao.gerar_pagamento_parcial(lote_id, itens, responsavel, forma, db_path)
    _display_table(res, title="Pagamento Parcial")


@consignacao_app.command("devolver")
@_trata_erros
def cmd_consignacao_devolver(
    lote_id: str = typer.Argument(...),
    item_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(consignacao.devolver_item(lote_id, item_id, responsavel, db_path), title="Item Devolvido")


@consignacao_app.command("fechar")
@_trata_erros
def cmd_consignacao_fechar(
    lote_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    forma: Optional[str] = typer.Option(None, help="Forma de pagamento"),
    db_path: str = DbOpt,
):
    _display_table(consignacao.fechar_lote(lote_id, responsavel, forma, db_path), title="Lote Fechado")


@consignacao_app.command("listar")
def cmd_consignacao_listar(status: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _display_table(consignacao.listar_lotes_consignacao(status, db_path), title="Lotes Consignados")


@consignacao_app.command("mostrar")
@_trata_erros
def cmd_consignacao_mostrar(lote_id: str = typer.Argument(...), db_path: str = DbOpt):
    _display_table(consignacao.obter_lote_consignacao(lote_id, db_path), title=f"Consignação {lote_id}")


# -----------------------
# vendas
# -----------------------

venda_app = typer.Typer(help="Vendas com fluxo de conferência.")
app.add_typer(venda_app, name="venda")


@venda_app.command("registrar")
@_trata_erros
def cmd_venda_registrar(
    arquivo: str = typer.Argument(..., help="JSON com loja_id, vendedor, cliente, itens, pagamentos, ..."),
    db_path: str = DbOpt,
):
    """Registra uma venda descrita num arquivo JSON."""
    with open(arquivo, "r", encoding="utf-8") as f:
        dados = json.load(f)
    _display_table(vendas.registrar_venda(dados, db_path), title="Venda Registrada")


@venda_app.command("sinal")
@_trata_erros
def cmd_venda_sinal(
    venda_id: str = typer.Argument(...),
    meio: str = typer.Option(...),
    valor: str = typer.Option(..., callback=_brl),
    responsavel: str = typer.Option(...),
    conta: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    """Completa o pagamento de uma venda com sinal."""
    pagamento = {"meio": meio, "valor": valor, "conta_id": conta}
    _display_table(vendas.completar_sinal(venda_id, [pagamento], responsavel, db_path), title="Venda")


@venda_app.command("aprovar")
@_trata_erros
def cmd_venda_aprovar(venda_id: str = typer.Argument(...), responsavel: str = typer.Option(...),
                      db_path: str = DbOpt):
    """Lançamento aprovado: envia para a conferência do gestor."""
    _display_table(vendas.aprovar_lancamento(venda_id, responsavel, db_path), title="Venda")


@venda_app.command("recusar")
@_trata_erros
def cmd_venda_recusar(venda_id: str = typer.Argument(...), responsavel: str = typer.Option(...),
                      motivo: str = typer.Option(...), db_path: str = DbOpt):
    _display_table(vendas.recusar_gestor(venda_id, responsavel, motivo, db_path), title="Venda Recusada")


@venda_app.command("aprovar-gestor")
@_trata_erros
def cmd_venda_aprovar_gestor(venda_id: str = typer.Argument(...), responsavel: str = typer.Option(...),
                             db_path: str = DbOpt):
    _display_table(vendas.aprovar_gestor(venda_id, responsavel, db_path), title="Venda")


@venda_app.command("devolver")
@_trata_erros
def cmd_venda_devolver(venda_id: str = typer.Argument(...), responsavel: str = typer.Option(...),
                       motivo: str = typer.Option(...), db_path: str = DbOpt):
    """Financeiro devolve a venda ao gestor."""
    _display_table(vendas.devolver_financeiro(venda_id, responsavel, motivo, db_path), title="Venda Devolvida")


@venda_app.command("finalizar")
@_trata_erros
def cmd_venda_finalizar(venda_id: str = typer.Argument(...), responsavel: str = typer.Option(...),
                        db_path: str = DbOpt):
    _display_table(vendas.finalizar_venda(venda_id, responsavel, db_path), title="Venda Finalizada")


@venda_app.command("downgrade")
@_trata_erros
def cmd_venda_downgrade(
    venda_id: str = typer.Argument(...),
    conta: str = typer.Option(..., help="Conta de onde sai a devolução"),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(vendas.finalizar_venda_downgrade(venda_id, conta, responsavel, db_path),
                   title="Downgrade Finalizado")


@venda_app.command("cancelar")
@_trata_erros
def cmd_venda_cancelar(
    venda_id: str = typer.Argument(...),
    responsavel: str = typer.Option(...),
    motivo: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(vendas.cancelar_venda(venda_id, responsavel, motivo, db_path), title="Venda Cancelada")


@venda_app.command("mostrar")
@_trata_erros
def cmd_venda_mostrar(venda_id: str = typer.Argument(...), db_path: str = DbOpt):
    _display_table(vendas.obter_venda(venda_id, db_path), title=f"Venda {venda_id}")


@venda_app.command("listar")
def cmd_venda_listar(
    status: Optional[str] = typer.Option(None),
    loja: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(vendas.listar_vendas(status, loja, db_path), title="Vendas")


# -----------------------
# fiado
# -----------------------

fiado_app = typer.Typer(help="Parcelas de fiado.")
app.add_typer(fiado_app, name="fiado")


@fiado_app.command("listar")
def cmd_fiado_listar(
    status: Optional[str] = typer.Option(None),
    cliente: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    _display_table(fiado.listar_parcelas(status, cliente, db_path=db_path), title="Parcelas de Fiado")


@fiado_app.command("pagar")
@_trata_erros
def cmd_fiado_pagar(
    parcela_id: str = typer.Argument(...),
    conta: str = typer.Option(...),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(fiado.pagar_parcela(parcela_id, conta, responsavel, db_path), title="Parcela Paga")


@fiado_app.command("atualizar")
def cmd_fiado_atualizar(db_path: str = DbOpt):
    """Marca como 'Vencido' as parcelas pendentes com vencimento passado."""
    _ok(f"{fiado.atualizar_vencidas(db_path=db_path)} parcela(s) vencida(s).")


@fiado_app.command("stats")
def cmd_fiado_stats(db_path: str = DbOpt):
    stats = fiado.estatisticas_fiado(db_path)
    linhas: List[Dict[str, Any]] = [
        {"status": s, "quantidade": v["quantidade"], "valor": v["valor"]} for s, v in stats["por_status"].items()
    ]
    _display_table(linhas, title="Fiado por Status")
    console.print(
        f"Em aberto: {formatar_brl(stats['total_em_aberto'])} | "
        f"Recebido: {formatar_brl(stats['total_recebido'])} | "
        f"Clientes devedores: {stats['clientes_devedores']}"
    )


# -----------------------
# financeiro
# -----------------------

fin_app = typer.Typer(help="Contas, transferências, despesas e razão.")
app.add_typer(fin_app, name="financeiro")


@fin_app.command("conta")
@_trata_erros
def cmd_fin_conta(
    nome: str = typer.Option(...),
    tipo: str = typer.Option(..., help="Caixa | Pix | Conta Bancária | Conta Digital"),
    loja: Optional[str] = typer.Option(None),
    saldo_inicial: str = typer.Option("0", callback=_brl),
    db_path: str = DbOpt,
):
    _display_table(financeiro.cadastrar_conta(nome, tipo, loja, saldo_inicial, db_path), title="Conta Cadastrada")


@fin_app.command("contas")
def cmd_fin_contas(loja: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _display_table(financeiro.listar_contas(loja, db_path), title="Contas")


@fin_app.command("transferir")
@_trata_erros
def cmd_fin_transferir(
    origem: str = typer.Option(...),
    destino: str = typer.Option(...),
    valor: str = typer.Option(..., callback=_brl),
    responsavel: str = typer.Option(...),
    descricao: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    trx = financeiro.movimentar_entre_contas(origem, destino, valor, responsavel, descricao, db_path)
    _ok(f"Transferência registrada ({trx}).")


@fin_app.command("despesa")
@_trata_erros
def cmd_fin_despesa(
    tipo: str = typer.Option(..., help="Fixa | Variável"),
    descricao: str = typer.Option(...),
    valor: str = typer.Option(..., callback=_brl),
    conta: str = typer.Option(...),
    competencia: Optional[str] = typer.Option(None, help="YYYY-MM"),
    loja: Optional[str] = typer.Option(None),
    db_path: str = DbOpt,
):
    res = financeiro.registrar_despesa(tipo, descricao, valor, conta, competencia, loja, db_path)
    _display_table(res, title="Despesa Registrada")


@fin_app.command("conferir")
@_trata_erros
def cmd_fin_conferir(lancamento_id: int = typer.Argument(...), responsavel: str = typer.Option(...),
                     db_path: str = DbOpt):
    _display_table(financeiro.conferir_lancamento(lancamento_id, responsavel, db_path), title="Lançamento")


@fin_app.command("saldo")
def cmd_fin_saldo(conta: str = typer.Argument(...), db_path: str = DbOpt):
    typer.echo(formatar_brl(financeiro.saldo_conta(conta, db_path)))


@fin_app.command("extrato")
def cmd_fin_extrato(conta: str = typer.Argument(...), db_path: str = DbOpt):
    _display_table(financeiro.extrato(conta, db_path), title=f"Extrato {conta}")


@fin_app.command("balancete")
def cmd_fin_balancete(db_path: str = DbOpt):
    res = financeiro.balancete(db_path)
    _display_table(res["contas"], title="Balancete")
    cor = "green" if res["diferenca"] == 0 else "red"
    console.print(
        f"Débitos: {formatar_brl(res['total_debito'])} | Créditos: {formatar_brl(res['total_credito'])} | "
        f"[{cor}]Diferença: {formatar_brl(res['diferenca'])}[/]"
    )


# -----------------------
# acessórios
# -----------------------

acessorio_app = typer.Typer(help="Estoque de acessórios.")
app.add_typer(acessorio_app, name="acessorio")


@acessorio_app.command("cadastrar")
@_trata_erros
def cmd_acessorio_cadastrar(
    descricao: str = typer.Option(...),
    loja: str = typer.Option(...),
    quantidade: int = typer.Option(0),
    custo: Optional[str] = typer.Option(None, callback=_brl),
    recomendado: Optional[str] = typer.Option(None, callback=_brl),
    categoria: Optional[str] = typer.Option(None),
    lote_mult: Optional[int] = typer.Option(None, help="Múltiplo de compra"),
    db_path: str = DbOpt,
):
    res = acessorios.cadastrar_acessorio(descricao, loja, quantidade, custo, recomendado, categoria, lote_mult,
                                         db_path)
    _display_table(res, title="Acessório Cadastrado")


@acessorio_app.command("entrada")
@_trata_erros
def cmd_acessorio_entrada(
    acessorio_id: str = typer.Argument(...),
    quantidade: int = typer.Argument(...),
    custo: Optional[str] = typer.Option(None, help="Custo unitário da entrada", callback=_brl),
    db_path: str = DbOpt,
):
    _display_table(acessorios.adicionar_estoque(acessorio_id, quantidade, custo, db_path=db_path), title="Entrada")


@acessorio_app.command("saida")
@_trata_erros
def cmd_acessorio_saida(
    acessorio_id: str = typer.Argument(...),
    quantidade: int = typer.Argument(...),
    db_path: str = DbOpt,
):
    _display_table(acessorios.subtrair_estoque(acessorio_id, quantidade, db_path=db_path), title="Saída")


@acessorio_app.command("valor")
@_trata_erros
def cmd_acessorio_valor(
    acessorio_id: str = typer.Argument(...),
    valor: str = typer.Argument(..., callback=_brl),
    responsavel: str = typer.Option(...),
    db_path: str = DbOpt,
):
    """Atualiza o valor recomendado (mantém histórico)."""
    acessorios.atualizar_valor_recomendado(acessorio_id, valor, responsavel, db_path)
    _display_table(acessorios.historico_valor_recomendado(acessorio_id, db_path), title="Histórico de Valores")


@acessorio_app.command("importar")
@_trata_erros
def cmd_acessorio_importar(
    path: str = typer.Argument(..., help="XLSX do catálogo de acessórios"),
    loja: str = typer.Option(...),
    db_path: str = DbOpt,
):
    _display_table(acessorios.importar_acessorios_planilha(path, loja, db_path), title="Importação de Acessórios")


@acessorio_app.command("listar")
def cmd_acessorio_listar(loja: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _display_table(acessorios.listar_acessorios(loja, db_path), title="Acessórios")


# -----------------------
# relatórios
# -----------------------

rel_app = typer.Typer(help="Relatórios gerenciais.")
app.add_typer(rel_app, name="rel")


@rel_app.command("painel")
def rel_painel(loja: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    """Painel de estoque de aparelhos."""
    res = relatorios.painel_estoque(loja, db_path)
    linhas = [{"status": s, **v} for s, v in res["por_status"].items()]
    _display_table(linhas, title="Aparelhos por Status")
    console.print(
        f"Disponíveis: {res['disponiveis']} | Valor em estoque: {formatar_brl(res['valor_estoque'])} | "
        f"Acessórios: {formatar_brl(res['valor_acessorios'])}"
    )
    if res["bateria_baixa"]:
        _display_table(
            [{k: a[k] for k in ("imei", "modelo", "loja_id", "saude_bateria")} for a in res["bateria_baixa"]],
            title="Bateria Baixa",
        )


@rel_app.command("notas")
def rel_notas(db_path: str = DbOpt):
    _display_table(relatorios.notas_pendentes(db_path), title="Notas Pendentes")


@rel_app.command("os")
def rel_os(loja: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _display_table(relatorios.os_em_aberto(loja, db_path=db_path), title="OS em Aberto")


@rel_app.command("ranking")
def rel_ranking(
    inicio: Optional[str] = typer.Option(None, help="YYYY-MM-DD"),
    fim: Optional[str] = typer.Option(None, help="YYYY-MM-DD"),
    db_path: str = DbOpt,
):
    _display_table(relatorios.ranking_vendedores(inicio, fim, db_path), title="Ranking de Vendedores")


@rel_app.command("reposicao")
def rel_reposicao(loja: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _display_table(relatorios.relatorio_reposicao_acessorios(loja, db_path), title="Reposição de Acessórios")


# -----------------------
# exportação
# -----------------------

exp_app = typer.Typer(help="Exporta listagens em CSV.")
app.add_typer(exp_app, name="exportar")


@exp_app.command("os")
def exp_os(path: str = typer.Argument(...), status: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _ok(f"{exportar_os_csv(path, status, db_path)} linha(s) em {path}")


@exp_app.command("garantias")
def exp_garantias(path: str = typer.Argument(...), status: Optional[str] = typer.Option(None),
                  db_path: str = DbOpt):
    _ok(f"{exportar_garantias_csv(path, status, db_path)} linha(s) em {path}")


@exp_app.command("vendas")
def exp_vendas(path: str = typer.Argument(...), status: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _ok(f"{exportar_fluxo_vendas_csv(path, status, db_path)} linha(s) em {path}")


@exp_app.command("acessorios")
def exp_acessorios(path: str = typer.Argument(...), loja: Optional[str] = typer.Option(None),
                   db_path: str = DbOpt):
    _ok(f"{exportar_acessorios_csv(path, loja, db_path)} linha(s) em {path}")


@exp_app.command("fiado")
def exp_fiado(path: str = typer.Argument(...), status: Optional[str] = typer.Option(None), db_path: str = DbOpt):
    _ok(f"{exportar_parcelas_csv(path, status, db_path)} linha(s) em {path}")


def main():
    app()


if __name__ == "__main__":
    main()
