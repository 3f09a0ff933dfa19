import json
from pathlib import Path

import pandas as pd
from typer.testing import CliRunner

from varejo.adapters.cli import app
from varejo.usecases.consignacao import obter_lote_consignacao
from varejo.usecases.ordens_servico import listar_os

runner = CliRunner()

IMEI = "352099001761481"


def _migrate(tmp_path: Path) -> str:
    db_path = str(tmp_path / "varejo_test.sqlite")
    result = runner.invoke(app, ["migrate", "--db", db_path])
    assert result.exit_code == 0, result.output
    return db_path


def test_cli_migrate_and_params(tmp_path: Path):
    db_path = _migrate(tmp_path)

    result = runner.invoke(app, ["params", "set", "markup_peca=1.8", "nivel_servico=0.97", "--db", db_path])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["params", "get", "nivel_servico", "--db", db_path])
    assert result.exit_code == 0
    assert result.stdout.strip() == "0.97"

    result = runner.invoke(app, ["params", "get", "tolerancia_divergencia", "--db", db_path])
    assert result.stdout.strip() == "(None)"

    result = runner.invoke(app, ["params", "show", "--db", db_path])
    assert result.exit_code == 0, result.output
    assert "markup_peca" in result.stdout


def test_cli_params_invalido(tmp_path: Path):
    db_path = _migrate(tmp_path)
    result = runner.invoke(app, ["params", "set", "juros=2", "--db", db_path])
    assert result.exit_code == 1
    assert "Parâmetro inválido" in result.stdout


def test_cli_params_valor_nao_numerico(tmp_path: Path):
    db_path = _migrate(tmp_path)
    result = runner.invoke(app, ["params", "set", "markup_peca=abc", "--db", db_path])
    assert result.exit_code == 1
    assert "Valor inválido para markup_peca" in result.stdout

    result = runner.invoke(app, ["params", "get", "markup_peca", "--db", db_path])
    assert result.stdout.strip() == "(None)"
    result = runner.invoke(app, ["params", "show", "--db", db_path])
    assert result.exit_code == 0, result.output


def test_cli_conta_com_valor_brl(tmp_path: Path):
    db_path = _migrate(tmp_path)
    result = runner.invoke(app, [
        "financeiro", "conta", "--nome", "Caixa Centro", "--tipo", "Caixa", "--loja", "LOJA-CENTRO",
        "--saldo-inicial", "1.500,00", "--db", db_path,
    ])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["financeiro", "saldo", "CTA-001", "--db", db_path])
    assert result.exit_code == 0
    assert "1.500,00" in result.stdout


def test_cli_valor_invalido(tmp_path: Path):
    db_path = _migrate(tmp_path)
    result = runner.invoke(app, [
        "aparelho", "cadastrar", IMEI, "--marca", "Apple", "--modelo", "iPhone 15", "--loja", "LOJA-CENTRO",
        "--custo", "abc", "--db", db_path,
    ])
    assert result.exit_code == 2


def test_cli_erro_de_negocio_sai_com_codigo_1(tmp_path: Path):
    db_path = _migrate(tmp_path)
    args = ["aparelho", "cadastrar", IMEI, "--marca", "Apple", "--modelo", "iPhone 15", "--loja", "LOJA-CENTRO",
            "--custo", "R$ 5.200,00", "--db", db_path]
    result = runner.invoke(app, args)
    assert result.exit_code == 0, result.output
    assert "5.200,00" in result.stdout

    result = runner.invoke(app, args)
    assert result.exit_code == 1
    assert "Erro" in result.stdout

    result = runner.invoke(app, ["aparelho", "consultar", "351111111111111", "--db", db_path])
    assert result.exit_code == 1


def test_cli_exportar_acessorios(tmp_path: Path):
    db_path = _migrate(tmp_path)
    result = runner.invoke(app, [
        "acessorio", "cadastrar", "--descricao", "Capa iPhone 15", "--loja", "LOJA-CENTRO",
        "--quantidade", "4", "--custo", "19,90", "--db", db_path,
    ])
    assert result.exit_code == 0, result.output

    csv_path = tmp_path / "out" / "acessorios.csv"
    result = runner.invoke(app, ["exportar", "acessorios", str(csv_path), "--db", db_path])
    assert result.exit_code == 0, result.output
    assert "1 linha(s)" in result.stdout

    df = pd.read_csv(csv_path, dtype=str)
    assert df.loc[0, "id"] == "ACESS-0100"
    assert df.loc[0, "valor_custo"] == "19.90"
    assert df.loc[0, "quantidade"] == "4"


def test_cli_consignacao_consumo_e_pagamento(tmp_path: Path):
    db_path = _migrate(tmp_path)
    lote_json = tmp_path / "lote.json"
    lote_json.write_text(json.dumps({
        "fornecedor": "Fornecedor X",
        "responsavel": "estoque",
        "itens": [{"descricao": "Tela iPhone 13", "quantidade": 2, "valor_custo": "300", "loja_id": "LOJA-CENTRO"}],
    }), encoding="utf-8")
    result = runner.invoke(app, ["consignacao", "criar", str(lote_json), "--db", db_path])
    assert result.exit_code == 0, result.output
    assert "CONS-001" in result.stdout

    result = runner.invoke(app, [
        "financeiro", "conta", "--nome", "Caixa Centro", "--tipo", "Caixa", "--loja", "LOJA-CENTRO",
        "--saldo-inicial", "1000", "--db", db_path,
    ])
    assert result.exit_code == 0, result.output
    result = runner.invoke(app, [
        "os", "abrir", "--cliente", "Maria", "--loja", "LOJA-CENTRO", "--setor", "ASSISTÊNCIA",
        "--descricao", "Troca de tela", "--tecnico", "Carlos", "--db", db_path,
    ])
    assert result.exit_code == 0, result.output
    os_id = listar_os(db_path=db_path)[0]["id"]
    result = runner.invoke(app, [
        "os", "peca", os_id, "--descricao", "Tela", "--valor", "600", "--estoque", "PEC-0001", "--db", db_path,
    ])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["consignacao", "pagamento", "CONS-001", "CONS-ITEM-001",
                                 "--responsavel", "gestor", "--forma", "Pix", "--db", db_path])
    assert result.exit_code == 0, result.output
    assert "PAG-001" in result.stdout

    result = runner.invoke(app, ["consignacao", "pagamento", "CONS-001", "CONS-ITEM-001",
                                 "--responsavel", "gestor", "--db", db_path])
    assert result.exit_code == 1
    assert "não tem consumo a faturar" in result.stdout

    result = runner.invoke(app, ["nota-assistencia", "pagar", "NOTA-CONS-001", "--conta", "CTA-001",
                                 "--responsavel", "financeiro", "--db", db_path])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["consignacao", "fechar", "CONS-001", "--responsavel", "gestor", "--db", db_path])
    assert result.exit_code == 0, result.output
    lote = obter_lote_consignacao("CONS-001", db_path)
    assert lote["status"] == "Concluido"
    assert lote["itens"][0]["quantidade_devolvida"] == 1


def test_cli_solicitacao_ate_nota(tmp_path: Path):
    db_path = _migrate(tmp_path)
    runner.invoke(app, [
        "os", "abrir", "--cliente", "Maria", "--loja", "LOJA-CENTRO", "--setor", "ASSISTÊNCIA",
        "--descricao", "Tela quebrada", "--db", db_path,
    ])
    os_id = listar_os(db_path=db_path)[0]["id"]

    result = runner.invoke(app, ["solicitacao", "solicitar", os_id, "--peca", "Tela", "--db", db_path])
    assert result.exit_code == 0, result.output
    assert "SOL-001" in result.stdout

    result = runner.invoke(app, ["solicitacao", "lote", "SOL-001", "--fornecedor", "Fornecedor A",
                                 "--responsavel", "compras", "--db", db_path])
    assert result.exit_code == 1

    result = runner.invoke(app, ["solicitacao", "aprovar", "SOL-001", "--fornecedor", "Fornecedor A",
                                 "--valor", "R$ 350,00", "--responsavel", "compras", "--db", db_path])
    assert result.exit_code == 0, result.output
    result = runner.invoke(app, ["solicitacao", "lote", "SOL-001", "--fornecedor", "Fornecedor A",
                                 "--responsavel", "compras", "--db", db_path])
    assert result.exit_code == 0, result.output
    assert "LOTE-001" in result.stdout

    result = runner.invoke(app, ["solicitacao", "enviar", "LOTE-001", "--responsavel", "compras", "--db", db_path])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["nota-assistencia", "mostrar", "NOTA-ASS-001", "--db", db_path])
    assert result.exit_code == 0, result.output
    assert "Pendente" in result.stdout
