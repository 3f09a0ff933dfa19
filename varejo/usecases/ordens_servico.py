# varejo/usecases/ordens_servico.py
"""
UC: Ordens de serviço da assistência técnica.

- Uma OS ativa por IMEI.
- Aparelho do estoque entra 'Em Assistencia' na abertura e volta a
  'Disponivel' na conclusão ou no cancelamento.
- Peças do estoque da assistência são consumidas com UPDATE condicional;
  o custo vai para CMV na conclusão (D CMV / C ESTOQUE).
- Peça consignada consumida entra no razão (D ESTOQUE / C FORNECEDORES) e
  o consumo é estornado no cancelamento.
- Pagamentos: D conta / C RECEITA_SERVICOS. Concluir exige pagamento total.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from varejo.adapters.parsers import normalizar_imei
from varejo.config import DB_PATH
from varejo.domain.calculos import Numero, ZERO, carimbo, dias_sla, dinheiro, soma, valor_peca_com_desconto
from varejo.domain.erros import ImeiIndisponivel, RegistroNaoEncontrado, RegraViolada
from varejo.domain.fluxos import FLUXO_OS
from varejo.domain.models import ORIGEM_CONSIGNACAO, SETORES_OS, ContaRazao, PecaOS, StatusAparelho, StatusOS
from varejo.infra.db import connect
from varejo.infra.logger import log_evento, operacao
from varejo.infra.repositories import AparelhoRepo, OSRepo, PecaEstoqueRepo, TimelineRepo, gerar_id
from .consignacao import estornar_consumo, registrar_consumo
from .estoque_aparelhos import alterar_status_aparelho
from .financeiro import conta_padrao, exigir_conta, lancar
from .transicoes import transicionar


# aparelho do estoque nestes status não pode entrar em assistência
_APARELHO_OCUPADO = (
    StatusAparelho.RESERVADO,
    StatusAparelho.EM_TRIAGEM,
    StatusAparelho.EM_ASSISTENCIA,
    StatusAparelho.EM_DESMONTE,
    StatusAparelho.EMPRESTADO,
)


def _exigir_os(conn: sqlite3.Connection, os_id: str) -> Dict[str, Any]:
    ordem = OSRepo(conn).get(os_id)
    if not ordem:
        raise RegistroNaoEncontrado("OS", os_id)
    return ordem


def _exigir_ativa(ordem: Dict[str, Any]) -> None:
    if ordem["status"] not in StatusOS.ATIVOS:
        raise RegraViolada(f"OS {ordem['id']} está '{ordem['status']}'")


def _devolver_aparelho(conn, ordem: Dict[str, Any], quando: str) -> None:
    if not ordem.get("aparelho_id"):
        return
    aparelho = AparelhoRepo(conn).get(ordem["aparelho_id"])
    if aparelho and aparelho["status"] == StatusAparelho.EM_ASSISTENCIA:
        alterar_status_aparelho(conn, aparelho, (StatusAparelho.EM_ASSISTENCIA,), StatusAparelho.DISPONIVEL,
                                None, quando, f"Retorno da {ordem['id']}")


# -------------------------
# Helper (conexão aberta)
# -------------------------

def criar_os(
    conn: sqlite3.Connection,
    cliente: str,
    loja_id: str,
    setor: str,
    descricao: str,
    quando: str,
    imei: Optional[str] = None,
    tecnico: Optional[str] = None,
    telefone: Optional[str] = None,
    modelo: Optional[str] = None,
    garantia_id: Optional[str] = None,
    responsavel: Optional[str] = None,
) -> Dict[str, Any]:
    """Abre a OS na conexão corrente (usado também pelas tratativas de garantia)."""
    if setor not in SETORES_OS:
        raise RegraViolada(f"Setor inválido: {setor} (use {', '.join(SETORES_OS)})")
    if not (cliente or "").strip():
        raise RegraViolada("Cliente é obrigatório")

    imei = normalizar_imei(imei) or None
    aparelho = None
    if imei:
        ativa = OSRepo(conn).ativa_por_imei(imei)
        if ativa:
            raise RegraViolada(f"IMEI {imei} já possui OS ativa ({ativa['id']})")
        aparelho = AparelhoRepo(conn).get_by_imei(imei)
        if aparelho and aparelho["status"] in _APARELHO_OCUPADO:
            raise ImeiIndisponivel(imei, f"está '{aparelho['status']}'")

    ordem = {
        "id": gerar_id(conn, "OS", 4, ano=int(quando[:4])),
        "cliente": cliente.strip(),
        "telefone": telefone,
        "loja_id": loja_id,
        "tecnico": tecnico,
        "setor": setor,
        "imei": imei,
        "aparelho_id": None,
        "modelo": modelo or (aparelho["modelo"] if aparelho else None),
        "descricao": descricao,
        "status": StatusOS.ABERTA,
        "valor_total": ZERO,
        "custo_total": ZERO,
        "valor_pago": ZERO,
        "garantia_id": garantia_id,
        "data_abertura": quando,
    }
    if aparelho and aparelho["status"] == StatusAparelho.DISPONIVEL:
        alterar_status_aparelho(conn, aparelho, (StatusAparelho.DISPONIVEL,), StatusAparelho.EM_ASSISTENCIA,
                                ordem["id"], quando, f"Enviado para assistência ({ordem['id']})")
        ordem["aparelho_id"] = aparelho["id"]

    OSRepo(conn).insert(ordem)
    TimelineRepo(conn).registrar("os", ordem["id"], "abertura", f"OS aberta - {setor}: {descricao}", quando,
                                 responsavel, status_novo=StatusOS.ABERTA)
    log_evento("assistencia", "abrir_os", ordem["id"], setor=setor, imei=imei)
    return ordem


# -------------------------
# Casos de uso
# -------------------------

def abrir_os(
    cliente: str,
    loja_id: str,
    setor: str,
    descricao: str,
    imei: Optional[str] = None,
    tecnico: Optional[str] = None,
    telefone: Optional[str] = None,
    modelo: Optional[str] = None,
    responsavel: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    quando = carimbo(agora)
    with operacao("os_abrir", {"cliente": cliente, "setor": setor, "imei": imei}) as ctx:
        with connect(db_path, imediato=True) as c:
            ordem = criar_os(c, cliente, loja_id, setor, descricao, quando, imei=imei, tecnico=tecnico,
                             telefone=telefone, modelo=modelo, responsavel=responsavel)
        ctx["resultado"] = ordem["id"]
    return ordem


def adicionar_peca_os(
    os_id: str,
    peca: Union[PecaOS, Dict[str, Any]],
    responsavel: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Inclui peça/serviço; peça do estoque é consumida na mesma transação."""
    dados = asdict(peca) if is_dataclass(peca) else dict(peca)
    valor = dinheiro(dados.get("valor"))
    percentual = dinheiro(dados.get("percentual") or 0)
    if valor <= 0:
        raise RegraViolada("Valor da peça deve ser positivo")
    if percentual < 0 or percentual > 100:
        raise RegraViolada("Percentual de desconto deve estar entre 0 e 100")
    if dados.get("terceirizado") and not dados.get("fornecedor"):
        raise RegraViolada("Peça terceirizada exige fornecedor")

    quando = carimbo(agora)
    with operacao("os_peca", {"os": os_id, "descricao": dados.get("descricao")}):
        with connect(db_path, imediato=True) as c:
            repo = OSRepo(c)
            ordem = _exigir_os(c, os_id)
            _exigir_ativa(ordem)

            custo = dinheiro(dados.get("custo"))
            peca_estoque_id = dados.get("peca_estoque_id")
            if peca_estoque_id:
                estoque = PecaEstoqueRepo(c)
                item = estoque.get(peca_estoque_id)
                if not item:
                    raise RegistroNaoEncontrado("Peça de estoque", peca_estoque_id)
                if not estoque.consumir(peca_estoque_id, 1):
                    raise RegraViolada(f"Peça {peca_estoque_id} ({item['descricao']}) sem estoque")
                custo = dinheiro(item["valor_custo"])
                if item["origem"] == ORIGEM_CONSIGNACAO:
                    registrar_consumo(c, item, os_id, responsavel or ordem["tecnico"], 1, quando)

            repo.insert_peca({
                "os_id": os_id,
                "descricao": dados.get("descricao") or "Peça",
                "valor": valor,
                "percentual": percentual,
                "valor_total": valor_peca_com_desconto(valor, percentual),
                "custo": custo,
                "peca_estoque_id": peca_estoque_id,
                "terceirizado": 1 if dados.get("terceirizado") else 0,
                "fornecedor": dados.get("fornecedor"),
                "data": quando,
            })
            pecas = repo.pecas(os_id)
            valor_total = soma(p["valor_total"] for p in pecas)
            custo_total = soma(p["custo"] for p in pecas)
            repo.update(os_id, valor_total=valor_total, custo_total=custo_total)
            TimelineRepo(c).registrar("os", os_id, "peca", f"Peça: {dados.get('descricao')} ({valor})", quando,
                                      responsavel)
            return {**ordem, "valor_total": valor_total, "custo_total": custo_total}


def alterar_status_os(
    os_id: str,
    novo_status: str,
    responsavel: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Movimenta a OS entre Aberta / Em serviço / Aguardando Peça."""
    if novo_status == StatusOS.CONCLUIDA:
        return concluir_os(os_id, responsavel, db_path=db_path, agora=agora)
    if novo_status == StatusOS.CANCELADA:
        return cancelar_os(os_id, responsavel, db_path=db_path, agora=agora)
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        ordem = _exigir_os(c, os_id)
        return transicionar(c, "os", ordem, FLUXO_OS, novo_status, quando, responsavel)


def registrar_pagamento_os(
    os_id: str,
    meio: str,
    valor: Numero,
    conta_id: Optional[str] = None,
    parcelas: int = 1,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    valor = dinheiro(valor)
    if valor <= 0:
        raise RegraViolada("Valor do pagamento deve ser positivo")
    if int(parcelas) < 1:
        raise RegraViolada("Parcelas deve ser >= 1")
    quando = carimbo(agora)
    with operacao("os_pagamento", {"os": os_id, "meio": meio, "valor": str(valor)}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = OSRepo(c)
            ordem = _exigir_os(c, os_id)
            _exigir_ativa(ordem)
            pago = dinheiro(ordem["valor_pago"]) + valor
            if pago > dinheiro(ordem["valor_total"]):
                raise RegraViolada(f"Pagamentos ({pago}) excedem o valor da OS ({dinheiro(ordem['valor_total'])})")
            conta_id = conta_id or conta_padrao(c, ordem["loja_id"], meio)
            exigir_conta(c, conta_id)
            trx = lancar(c, f"Pagamento {os_id} ({meio})", [(conta_id, ContaRazao.RECEITA_SERVICOS, valor)],
                         quando, "os", os_id)
            repo.insert_pagamento({
                "os_id": os_id, "meio": meio, "valor": valor, "parcelas": int(parcelas),
                "conta_id": conta_id, "transacao_id": trx, "data": quando,
            })
            repo.update(os_id, valor_pago=pago)
            TimelineRepo(c).registrar("os", os_id, "pagamento", f"{meio} {valor}", quando,
                                      impacto_financeiro=valor)
        ctx["resultado"] = trx
    return {**ordem, "valor_pago": pago}


def concluir_os(
    os_id: str,
    responsavel: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Conclui a OS; exige Σ pagamentos == valor total."""
    quando = carimbo(agora)
    with operacao("os_concluir", {"os": os_id}):
        with connect(db_path, imediato=True) as c:
            repo = OSRepo(c)
            ordem = _exigir_os(c, os_id)
            pago = soma(p["valor"] for p in repo.pagamentos(os_id))
            total = dinheiro(ordem["valor_total"])
            if pago != total:
                raise RegraViolada(f"OS {os_id}: pagamentos {pago} diferentes do total {total}")
            ordem = transicionar(c, "os", ordem, FLUXO_OS, StatusOS.CONCLUIDA, quando, responsavel,
                                 impacto_financeiro=total, data_conclusao=quando)
            custo_estoque = soma(p["custo"] for p in repo.pecas(os_id) if p["peca_estoque_id"])
            if custo_estoque > 0:
                lancar(c, f"Peças consumidas {os_id}", [(ContaRazao.CMV, ContaRazao.ESTOQUE, custo_estoque)],
                       quando, "os", os_id)
            _devolver_aparelho(c, ordem, quando)
            return ordem


def cancelar_os(
    os_id: str,
    responsavel: Optional[str] = None,
    motivo: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Cancela a OS: devolve peças ao estoque e estorna pagamentos recebidos."""
    quando = carimbo(agora)
    with operacao("os_cancelar", {"os": os_id, "motivo": motivo}):
        with connect(db_path, imediato=True) as c:
            repo = OSRepo(c)
            ordem = _exigir_os(c, os_id)
            ordem = transicionar(c, "os", ordem, FLUXO_OS, StatusOS.CANCELADA, quando, responsavel,
                                 motivo or "OS cancelada", data_conclusao=quando)
            for p in repo.pecas(os_id):
                if p["peca_estoque_id"]:
                    c.execute("UPDATE peca_estoque SET quantidade = quantidade + 1 WHERE id = ?",
                              (p["peca_estoque_id"],))
                    estornar_consumo(c, p["peca_estoque_id"], os_id, quando, responsavel)
            for pag in repo.pagamentos(os_id):
                lancar(c, f"Estorno pagamento {os_id}",
                       [(ContaRazao.RECEITA_SERVICOS, pag["conta_id"], pag["valor"])], quando, "os", os_id)
            _devolver_aparelho(c, ordem, quando)
            return ordem


def obter_os(os_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    with connect(db_path) as c:
        repo = OSRepo(c)
        ordem = _exigir_os(c, os_id)
        ordem["pecas"] = repo.pecas(os_id)
        ordem["pagamentos"] = repo.pagamentos(os_id)
        ordem["timeline"] = TimelineRepo(c).listar("os", os_id)
        return ordem


def listar_os(
    status: Optional[str] = None,
    loja_id: Optional[str] = None,
    db_path: str = DB_PATH,
    hoje: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """OS com dias de SLA (até hoje, ou até a conclusão)."""
    hoje = hoje or datetime.now()
    with connect(db_path) as c:
        ordens = OSRepo(c).listar(status, loja_id)
    for o in ordens:
        o["sla_dias"] = dias_sla(o["data_abertura"], o["data_conclusao"] or hoje)
    return ordens


def historico_cliente(cliente: str, limite: int = 3, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    """Últimas OS do cliente (mais recente primeiro)."""
    with connect(db_path) as c:
        return OSRepo(c).por_cliente(cliente, limite)
