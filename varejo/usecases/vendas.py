# varejo/usecases/vendas.py
"""
UC: Venda com fluxo de conferência (vendedor -> gestor -> financeiro).

Registro:
- Todos os IMEIs são reservados e os acessórios baixados numa única
  transação BEGIN IMMEDIATE; qualquer falha desfaz a venda inteira.
- total = subtotal + acessórios + garantia estendida + entrega - trade-in.
- Status inicial: 'Aguardando Conferência' (pagamento completo), 'Feito Sinal'
  (pagamento parcial com sinal) ou downgrade (total negativo, saldo a devolver).

Finalização (Conferência Financeiro -> Finalizado), numa única transação:
- aparelhos reservados viram 'Vendido';
- razão: D conta|CLIENTES_FIADO / C RECEITA_VENDAS por pagamento,
  D ESTOQUE / C RECEITA_VENDAS por trade-in, D CMV / C ESTOQUE pelo custo,
  D DESPESA_COMISSOES / C COMISSOES_A_PAGAR pela comissão;
- parcelas de fiado, garantias por aparelho, trade-ins para triagem;
- a venda fica bloqueada para edição.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, is_dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from varejo.config import DB_PATH, DEFAULTS, RegrasNegocio
from varejo.domain.calculos import (
    ZERO,
    calcular_comissao_hibrida,
    carimbo,
    dinheiro,
    margem_percentual,
    soma,
)
from varejo.domain.erros import ImeiIndisponivel, RegistroNaoEncontrado, RegraViolada
from varejo.domain.fluxos import FLUXO_VENDA
from varejo.domain.models import MEIO_FIADO, ContaRazao, NovaVenda, StatusAparelho, StatusVenda
from varejo.infra.db import connect
from varejo.infra.logger import log_evento, operacao
from varejo.infra.repositories import AparelhoRepo, ParamsRepo, RazaoRepo, TimelineRepo, VendaRepo, gerar_id
from .acessorios import baixar_acessorio, devolver_acessorio
from .estoque_aparelhos import (
    alterar_status_aparelho,
    enviar_para_triagem,
    exigir_imei_valido,
    liberar_reserva,
    registrar_aparelho,
    reservar_imei,
)
from .fiado import gerar_parcelas
from .financeiro import conta_padrao, exigir_conta, lancar
from .garantias import registrar_garantia_conn
from .transicoes import transicionar


# -------------------------
# Normalização da entrada
# -------------------------

def _como_dict(x: Any) -> Dict[str, Any]:
    return asdict(x) if is_dataclass(x) else dict(x)


def _normalizar_pagamentos(pagamentos: List[Any]) -> List[Dict[str, Any]]:
    out = []
    for p in pagamentos:
        p = _como_dict(p)
        meio = (p.get("meio") or "").strip()
        if not meio:
            raise RegraViolada("Meio de pagamento é obrigatório")
        valor = dinheiro(p.get("valor"))
        if valor <= 0:
            raise RegraViolada(f"Pagamento {meio} com valor inválido: {valor}")
        parcelas = p.get("parcelas")
        parcelas = 1 if parcelas is None else int(parcelas)
        if parcelas < 1:
            raise RegraViolada("Parcelas deve ser >= 1")
        dia = p.get("dia_vencimento")
        if meio == MEIO_FIADO and not dia:
            raise RegraViolada("Pagamento fiado exige dia de vencimento")
        out.append({
            "meio": meio,
            "valor": valor,
            "conta_id": p.get("conta_id"),
            "parcelas": parcelas,
            "dia_vencimento": int(dia) if dia else None,
        })
    return out


def normalizar_venda(venda: Union[NovaVenda, Dict[str, Any]]) -> Dict[str, Any]:
    """Aceita `NovaVenda` ou dicionário (ex.: JSON da CLI) e valida os campos."""
    dados = _como_dict(venda)
    for campo in ("loja_id", "vendedor", "cliente"):
        if not (dados.get(campo) or "").strip():
            raise RegraViolada(f"Campo obrigatório ausente: {campo}")

    itens = []
    imeis = set()
    for it in dados.get("itens") or []:
        it = _como_dict(it)
        imei = exigir_imei_valido(it.get("imei"))
        if imei in imeis:
            raise RegraViolada(f"IMEI {imei} repetido na venda")
        imeis.add(imei)
        valor = dinheiro(it.get("valor_venda"))
        if valor <= 0:
            raise RegraViolada(f"Valor de venda inválido para {imei}")
        itens.append({"imei": imei, "valor_venda": valor})

    acessorios = []
    for a in dados.get("acessorios") or []:
        a = _como_dict(a)
        qtd = int(a.get("quantidade") or 0)
        valor = dinheiro(a.get("valor_unitario"))
        if qtd <= 0 or valor < 0:
            raise RegraViolada(f"Acessório {a.get('acessorio_id')} com quantidade/valor inválido")
        acessorios.append({"acessorio_id": a["acessorio_id"], "quantidade": qtd, "valor_unitario": valor})

    trade_ins = []
    for t in dados.get("trade_ins") or []:
        t = _como_dict(t)
        imei = exigir_imei_valido(t.get("imei"))
        if imei in imeis:
            raise RegraViolada(f"IMEI {imei} aparece como item e como trade-in")
        imeis.add(imei)
        valor = dinheiro(t.get("valor_abatimento"))
        if valor <= 0:
            raise RegraViolada(f"Valor de abatimento inválido para {imei}")
        trade_ins.append({
            "imei": imei,
            "marca": t.get("marca"),
            "modelo": t.get("modelo"),
            "valor_abatimento": valor,
            "saude_bateria": t.get("saude_bateria"),
        })

    if not itens and not acessorios:
        raise RegraViolada("Venda sem itens")

    taxa = dinheiro(dados.get("taxa_entrega"))
    garantia = dinheiro(dados.get("garantia_estendida"))
    if taxa < 0 or garantia < 0:
        raise RegraViolada("Taxa de entrega e garantia estendida não podem ser negativas")

    return {
        "loja_id": dados["loja_id"].strip(),
        "vendedor": dados["vendedor"].strip(),
        "cliente": dados["cliente"].strip(),
        "itens": itens,
        "acessorios": acessorios,
        "trade_ins": trade_ins,
        "pagamentos": _normalizar_pagamentos(dados.get("pagamentos") or []),
        "taxa_entrega": taxa,
        "garantia_estendida": garantia,
        "sinal": bool(dados.get("sinal")),
        "observacoes": dados.get("observacoes"),
    }


# -------------------------
# Helpers (conexão aberta)
# -------------------------

def _exigir_venda(conn: sqlite3.Connection, venda_id: str) -> Dict[str, Any]:
    venda = VendaRepo(conn).get(venda_id)
    if not venda:
        raise RegistroNaoEncontrado("Venda", venda_id)
    return venda


def _gravar_pagamentos(conn, venda: Dict[str, Any], pagamentos: List[Dict[str, Any]], quando: str) -> None:
    repo = VendaRepo(conn)
    for p in pagamentos:
        if p["meio"] != MEIO_FIADO:
            p["conta_id"] = p["conta_id"] or conta_padrao(conn, venda["loja_id"], p["meio"])
            exigir_conta(conn, p["conta_id"])
        repo.insert_pagamento({"venda_id": venda["id"], **p, "data": quando})


def _status_inicial(total: Decimal, pago: Decimal, sinal: bool) -> str:
    if pago == total:
        return StatusVenda.AGUARDANDO_CONFERENCIA
    if sinal and ZERO < pago < total:
        return StatusVenda.FEITO_SINAL
    raise RegraViolada(f"Pagamentos ({pago}) não conferem com o total da venda ({total})")


def _verificar_trade_in_livre(conn, imei: str) -> None:
    existente = AparelhoRepo(conn).get_by_imei(imei)
    if existente and existente["status"] not in StatusAparelho.INATIVOS:
        raise ImeiIndisponivel(imei, f"já está no estoque ({existente['status']}) e não pode entrar como trade-in")


# -------------------------
# Registro
# -------------------------

def registrar_venda(
    venda: Union[NovaVenda, Dict[str, Any]],
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Registra a venda reservando IMEIs e baixando acessórios de forma atômica."""
    dados = normalizar_venda(venda)
    regras = ParamsRepo(db_path).regras()
    quando = carimbo(agora)
    with operacao("venda_registrar", {"loja": dados["loja_id"], "vendedor": dados["vendedor"],
                                      "itens": len(dados["itens"])}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = VendaRepo(c)
            venda_id = gerar_id(c, "VEN", 4, ano=int(quando[:4]))

            itens = []
            for it in dados["itens"]:
                aparelho = reservar_imei(c, it["imei"], venda_id, quando)
                itens.append({
                    "venda_id": venda_id,
                    "aparelho_id": aparelho["id"],
                    "imei": aparelho["imei"],
                    "modelo": aparelho["modelo"],
                    "categoria": aparelho["categoria"],
                    "valor_venda": it["valor_venda"],
                    "valor_custo": dinheiro(aparelho["valor_custo"]),
                })

            acessorios = []
            for a in dados["acessorios"]:
                acessorio = baixar_acessorio(c, a["acessorio_id"], a["quantidade"], "venda", venda_id, quando)
                acessorios.append({
                    "venda_id": venda_id,
                    **a,
                    "valor_custo": dinheiro(acessorio["valor_custo"]),
                })

            for t in dados["trade_ins"]:
                _verificar_trade_in_livre(c, t["imei"])

            subtotal = soma(i["valor_venda"] for i in itens)
            total_acessorios = soma(a["valor_unitario"] * a["quantidade"] for a in acessorios)
            total_trade_in = soma(t["valor_abatimento"] for t in dados["trade_ins"])
            receita_bruta = subtotal + total_acessorios + dados["garantia_estendida"]
            total = dinheiro(receita_bruta + dados["taxa_entrega"] - total_trade_in)
            custo = soma([*(i["valor_custo"] for i in itens),
                          *(a["valor_custo"] * a["quantidade"] for a in acessorios)])
            lucro = dinheiro(receita_bruta - custo)
            comissao = calcular_comissao_hibrida(dados["garantia_estendida"], lucro, dados["loja_id"], regras)

            pago = soma(p["valor"] for p in dados["pagamentos"])
            if total < 0:
                if dados["pagamentos"]:
                    raise RegraViolada("Downgrade não recebe pagamentos; o saldo é devolvido ao cliente")
                status, tipo, saldo_devolver = StatusVenda.AGUARDANDO_CONFERENCIA, "Downgrade", -total
            else:
                status, tipo, saldo_devolver = _status_inicial(total, pago, dados["sinal"]), "Venda", ZERO

            registro = {
                "id": venda_id,
                "loja_id": dados["loja_id"],
                "vendedor": dados["vendedor"],
                "cliente": dados["cliente"],
                "status": status,
                "tipo_operacao": tipo,
                "subtotal": subtotal,
                "total_acessorios": total_acessorios,
                "total_trade_in": total_trade_in,
                "taxa_entrega": dados["taxa_entrega"],
                "valor_garantia_estendida": dados["garantia_estendida"],
                "total": total,
                "valor_custo": custo,
                "lucro": lucro,
                "margem": margem_percentual(lucro, custo),
                "comissao": comissao["total"],
                "saldo_devolver": dinheiro(saldo_devolver),
                "sinal": 1 if status == StatusVenda.FEITO_SINAL else 0,
                "bloqueada": 0,
                "observacoes": dados["observacoes"],
                "data_registro": quando,
            }
            repo.insert(registro)
            for i in itens:
                repo.insert_item(i)
            for a in acessorios:
                repo.insert_acessorio(a)
            for t in dados["trade_ins"]:
                repo.insert_trade_in({"venda_id": venda_id, **t})
            _gravar_pagamentos(c, registro, dados["pagamentos"], quando)

            TimelineRepo(c).registrar("venda", venda_id, "registro",
                                      f"Venda registrada por {dados['vendedor']} ({tipo})", quando,
                                      dados["vendedor"], status_novo=status, impacto_financeiro=total)
        ctx["resultado"] = venda_id
    log_evento("vendas", "registrar", venda_id, status=status, total=str(total))
    return registro


def completar_sinal(
    venda_id: str,
    pagamentos: List[Any],
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Completa o pagamento de uma venda com sinal."""
    novos = _normalizar_pagamentos(pagamentos)
    quando = carimbo(agora)
    with operacao("venda_completar_sinal", {"venda": venda_id}):
        with connect(db_path, imediato=True) as c:
            repo = VendaRepo(c)
            venda = _exigir_venda(c, venda_id)
            if venda["status"] != StatusVenda.FEITO_SINAL:
                raise RegraViolada(f"Venda {venda_id} não está com sinal ('{venda['status']}')")
            pago = soma([*(p["valor"] for p in repo.pagamentos(venda_id)), *(p["valor"] for p in novos)])
            total = dinheiro(venda["total"])
            if pago > total:
                raise RegraViolada(f"Pagamentos ({pago}) excedem o total da venda ({total})")
            _gravar_pagamentos(c, venda, novos, quando)
            TimelineRepo(c).registrar("venda", venda_id, "pagamento", f"Pagamento complementar; pago {pago}",
                                      quando, responsavel, impacto_financeiro=soma(p["valor"] for p in novos))
            if pago == total:
                venda = transicionar(c, "venda", venda, FLUXO_VENDA, StatusVenda.AGUARDANDO_CONFERENCIA, quando,
                                     responsavel, "Sinal completado")
            return venda


# -------------------------
# Conferência
# -------------------------

def _mover(venda_id, novo, responsavel, descricao=None, db_path=DB_PATH, agora=None, **campos):
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        venda = _exigir_venda(c, venda_id)
        venda = transicionar(c, "venda", venda, FLUXO_VENDA, novo, quando, responsavel, descricao, **campos)
    log_evento("vendas", "status", venda_id, status=novo, responsavel=responsavel)
    return venda


def aprovar_lancamento(venda_id: str, responsavel: str, db_path: str = DB_PATH,
                       agora: Optional[datetime] = None) -> Dict[str, Any]:
    """Envia a venda para a conferência do gestor."""
    return _mover(venda_id, StatusVenda.CONFERENCIA_GESTOR, responsavel, db_path=db_path, agora=agora)


def recusar_gestor(venda_id: str, responsavel: str, motivo: str, db_path: str = DB_PATH,
                   agora: Optional[datetime] = None) -> Dict[str, Any]:
    if not (motivo or "").strip():
        raise RegraViolada("Motivo da recusa é obrigatório")
    return _mover(venda_id, StatusVenda.RECUSADA_GESTOR, responsavel, f"Recusada: {motivo}",
                  db_path=db_path, agora=agora, motivo_recusa=motivo)


def aprovar_gestor(venda_id: str, responsavel: str, db_path: str = DB_PATH,
                   agora: Optional[datetime] = None) -> Dict[str, Any]:
    """Conferência Financeiro, ou Pagamento Downgrade quando há saldo a devolver."""
    with connect(db_path) as c:
        venda = _exigir_venda(c, venda_id)
    novo = (StatusVenda.PAGAMENTO_DOWNGRADE if dinheiro(venda["saldo_devolver"]) > 0
            else StatusVenda.CONFERENCIA_FINANCEIRO)
    return _mover(venda_id, novo, responsavel, db_path=db_path, agora=agora)


def devolver_financeiro(venda_id: str, responsavel: str, motivo: str, db_path: str = DB_PATH,
                        agora: Optional[datetime] = None) -> Dict[str, Any]:
    if not (motivo or "").strip():
        raise RegraViolada("Motivo da devolução é obrigatório")
    return _mover(venda_id, StatusVenda.DEVOLVIDO_FINANCEIRO, responsavel, f"Devolvida: {motivo}",
                  db_path=db_path, agora=agora, motivo_devolucao=motivo)


# -------------------------
# Finalização
# -------------------------

def _efetivar(c, venda: Dict[str, Any], quando: str, responsavel: str, regras: RegrasNegocio):
    """Parte comum das finalizações: baixa dos aparelhos, garantias, trade-ins.

    Devolve as partidas de custo, trade-in e comissão.
    """
    repo = VendaRepo(c)
    venda_id = venda["id"]
    partidas = []

    for item in repo.itens(venda_id):
        aparelho = AparelhoRepo(c).get(item["aparelho_id"])
        if aparelho["reserva_ref"] != venda_id:
            raise ImeiIndisponivel(aparelho["imei"], f"não está reservado para {venda_id}")
        alterar_status_aparelho(c, aparelho, (StatusAparelho.RESERVADO,), StatusAparelho.VENDIDO, venda_id,
                                quando, f"Vendido na {venda_id}")
        registrar_garantia_conn(c, item["imei"], item["categoria"] or "Novo", quando, modelo=item["modelo"],
                                cliente=venda["cliente"], loja_id=venda["loja_id"], venda_id=venda_id,
                                aparelho_id=item["aparelho_id"], regras=regras)

    for t in repo.trade_ins(venda_id):
        aparelho = registrar_aparelho(c, {
            "imei": t["imei"],
            "marca": t["marca"],
            "modelo": t["modelo"],
            "categoria": "Seminovo",
            "saude_bateria": t["saude_bateria"],
            "valor_custo": t["valor_abatimento"],
            "loja_id": venda["loja_id"],
            "status": StatusAparelho.EM_TRIAGEM,
            "origem": "Trade-In",
            "origem_ref": venda_id,
        }, quando)
        enviar_para_triagem(c, aparelho, "Trade-In", venda_id, quando)
        repo.update_trade_in(t["id"], aparelho_id=aparelho["id"])
        partidas.append((ContaRazao.ESTOQUE, ContaRazao.RECEITA_VENDAS, t["valor_abatimento"]))

    custo = dinheiro(venda["valor_custo"])
    if custo > 0:
        partidas.append((ContaRazao.CMV, ContaRazao.ESTOQUE, custo))

    comissao = calcular_comissao_hibrida(venda["valor_garantia_estendida"], venda["lucro"], venda["loja_id"],
                                         regras)["total"]
    if comissao > 0:
        partidas.append((ContaRazao.DESPESA_COMISSOES, ContaRazao.COMISSOES_A_PAGAR, comissao))
    return partidas, comissao


def finalizar_venda(
    venda_id: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Conferência Financeiro -> Finalizado, com todos os lançamentos do razão."""
    regras = ParamsRepo(db_path).regras()
    quando = carimbo(agora)
    with operacao("venda_finalizar", {"venda": venda_id, "responsavel": responsavel}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = VendaRepo(c)
            venda = _exigir_venda(c, venda_id)
            if venda["tipo_operacao"] == "Downgrade":
                raise RegraViolada("Downgrade é finalizado com finalizar_venda_downgrade")
            venda = transicionar(c, "venda", venda, FLUXO_VENDA, StatusVenda.FINALIZADO, quando, responsavel,
                                 impacto_financeiro=dinheiro(venda["total"]))

            partidas = []
            for p in repo.pagamentos(venda_id):
                if p["meio"] == MEIO_FIADO:
                    partidas.append((ContaRazao.CLIENTES_FIADO, ContaRazao.RECEITA_VENDAS, p["valor"]))
                    gerar_parcelas(c, venda, p["valor"], p["parcelas"], p["dia_vencimento"], quando)
                else:
                    partidas.append((p["conta_id"], ContaRazao.RECEITA_VENDAS, p["valor"]))

            demais, comissao = _efetivar(c, venda, quando, responsavel, regras)
            trx = lancar(c, f"Venda {venda_id} ({venda['cliente']})", partidas + demais, quando, "venda", venda_id) \
                if partidas + demais else None
            repo.update(venda_id, bloqueada=1, comissao=comissao, data_finalizacao=quando)
        ctx["resultado"] = trx
    log_evento("vendas", "finalizar", venda_id, total=str(venda["total"]), comissao=str(comissao))
    return {**venda, "bloqueada": 1, "comissao": comissao, "data_finalizacao": quando, "transacao_id": trx}


def finalizar_venda_downgrade(
    venda_id: str,
    conta_origem: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Pagamento Downgrade -> Finalizado: devolve o saldo ao cliente pela conta de origem."""
    regras = ParamsRepo(db_path).regras()
    quando = carimbo(agora)
    with operacao("venda_downgrade", {"venda": venda_id, "conta": conta_origem}) as ctx:
        with connect(db_path, imediato=True) as c:
            venda = _exigir_venda(c, venda_id)
            exigir_conta(c, conta_origem)
            saldo_devolver = dinheiro(venda["saldo_devolver"])
            saldo_conta = RazaoRepo(c).saldo(conta_origem)
            if saldo_conta < saldo_devolver:
                raise RegraViolada(f"Saldo insuficiente em {conta_origem}: {saldo_conta} < {saldo_devolver}")
            venda = transicionar(c, "venda", venda, FLUXO_VENDA, StatusVenda.FINALIZADO, quando, responsavel,
                                 f"Downgrade: devolvido {saldo_devolver}", -saldo_devolver,
                                 conta_devolucao=conta_origem)
            partidas = [(ContaRazao.DEVOLUCOES_CLIENTES, conta_origem, saldo_devolver)]
            demais, comissao = _efetivar(c, venda, quando, responsavel, regras)
            trx = lancar(c, f"Downgrade {venda_id} ({venda['cliente']})", partidas + demais, quando,
                         "venda", venda_id)
            VendaRepo(c).update(venda_id, bloqueada=1, comissao=comissao, data_finalizacao=quando)
        ctx["resultado"] = trx
    return {**venda, "bloqueada": 1, "comissao": comissao, "data_finalizacao": quando, "transacao_id": trx}


def cancelar_venda(
    venda_id: str,
    responsavel: str,
    motivo: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Cancela antes da conferência: libera reservas e devolve acessórios.

    Valores já recebidos (sinal ou pagamento integral) são devolvidos ao
    cliente pelas mesmas contas: o recebimento e o estorno ficam no razão
    em `DEVOLUCOES_CLIENTES`, com referência à venda.
    """
    quando = carimbo(agora)
    with operacao("venda_cancelar", {"venda": venda_id, "motivo": motivo}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = VendaRepo(c)
            venda = _exigir_venda(c, venda_id)
            recebidos = [p for p in repo.pagamentos(venda_id) if p["meio"] != MEIO_FIADO]
            devolvido = soma(p["valor"] for p in recebidos)
            venda = transicionar(c, "venda", venda, FLUXO_VENDA, StatusVenda.CANCELADA, quando, responsavel,
                                 motivo or "Venda cancelada", -devolvido if devolvido else None, bloqueada=1)
            for item in repo.itens(venda_id):
                liberar_reserva(c, item["aparelho_id"], venda_id, quando)
            for a in repo.acessorios(venda_id):
                devolver_acessorio(c, a["acessorio_id"], a["quantidade"], venda_id, quando)

            trx = None
            if recebidos:
                partidas = []
                for p in recebidos:
                    partidas.append((p["conta_id"], ContaRazao.DEVOLUCOES_CLIENTES, p["valor"]))
                    partidas.append((ContaRazao.DEVOLUCOES_CLIENTES, p["conta_id"], p["valor"]))
                trx = lancar(c, f"Devolução de pagamentos da venda cancelada {venda_id}", partidas, quando,
                             "venda", venda_id)
                TimelineRepo(c).registrar("venda", venda_id, "devolucao",
                                          f"Devolvido ao cliente {devolvido} ({trx})", quando, responsavel,
                                          impacto_financeiro=-devolvido)
        ctx["resultado"] = trx
    if trx:
        log_evento("vendas", "devolucao", venda_id, valor=str(devolvido), origem=trx)
    return {**venda, "valor_devolvido": devolvido, "transacao_id": trx}


def registrar_edicao(
    venda_id: str,
    responsavel: str,
    descricao: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> int:
    """Registra uma edição na timeline; vendas bloqueadas não aceitam edição."""
    with connect(db_path, imediato=True) as c:
        venda = _exigir_venda(c, venda_id)
        if venda["bloqueada"] or venda["status"] in StatusVenda.BLOQUEADOS:
            raise RegraViolada(f"Venda {venda_id} está bloqueada para edição")
        return TimelineRepo(c).registrar("venda", venda_id, "edicao", descricao, carimbo(agora), responsavel)


# -------------------------
# Consultas
# -------------------------

def listar_vendas(
    status: Optional[str] = None,
    loja_id: Optional[str] = None,
    db_path: str = DB_PATH,
) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return VendaRepo(c).listar(status, loja_id)


def obter_venda(venda_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    with connect(db_path) as c:
        repo = VendaRepo(c)
        venda = _exigir_venda(c, venda_id)
        venda["itens"] = repo.itens(venda_id)
        venda["acessorios"] = repo.acessorios(venda_id)
        venda["trade_ins"] = repo.trade_ins(venda_id)
        venda["pagamentos"] = repo.pagamentos(venda_id)
        venda["lancamentos"] = RazaoRepo(c).por_referencia("venda", venda_id)
        venda["timeline"] = TimelineRepo(c).listar("venda", venda_id)
        return venda
