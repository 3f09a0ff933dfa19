# varejo/usecases/estoque_aparelhos.py
"""
UC: Estoque de aparelhos serializados (IMEI) e triagem de produtos pendentes.

Reserva de IMEI:
- Um aparelho só sai de 'Disponivel' por um UPDATE condicional
  (`WHERE status = 'Disponivel'`) dentro de uma transação BEGIN IMMEDIATE.
  Se nenhuma linha for afetada, outro fluxo (venda, retirada, empréstimo,
  troca) já detém o aparelho e levantamos `ImeiIndisponivel`.
- `reserva_ref` guarda quem detém o aparelho (VEN-..., RET-..., TRAT-...).

Triagem:
- Aparelhos seminovos (trade-in, nota de entrada, troca em garantia) entram
  'Em Triagem' com um registro em `produto_pendente`. Só voltam a
  'Disponivel' depois dos pareceres de estoque/assistência.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from varejo.adapters.parsers import normalizar_imei, validar_imei
from varejo.config import DB_PATH
from varejo.domain.calculos import Numero, carimbo, dinheiro, soma
from varejo.domain.erros import ImeiIndisponivel, RegistroNaoEncontrado, RegraViolada
from varejo.domain.fluxos import FLUXO_PENDENTE
from varejo.domain.models import (
    PARECER_ASSIST_AGUARDANDO_PECA,
    PARECER_ASSIST_AJUSTES,
    PARECER_ASSIST_CONFERIDO,
    PARECER_ESTOQUE_ENCAMINHADO,
    PARECER_ESTOQUE_OK,
    PARECERES_ASSISTENCIA,
    PARECERES_ESTOQUE,
    ContaRazao,
    StatusAparelho,
    StatusPendente,
)
from varejo.infra.db import connect
from varejo.infra.logger import log_database_operation, log_evento, operacao
from varejo.infra.repositories import AparelhoRepo, PendenteRepo, TimelineRepo, gerar_id
from .financeiro import lancar
from .transicoes import transicionar


# -------------------------
# Helpers (conexão aberta)
# -------------------------

def exigir_imei_valido(imei: Any) -> str:
    digitos = normalizar_imei(imei)
    if not validar_imei(digitos):
        raise RegraViolada(f"IMEI inválido: {imei!r} (esperado 15 dígitos)")
    return digitos


def exigir_aparelho(conn: sqlite3.Connection, imei: str) -> Dict[str, Any]:
    aparelho = AparelhoRepo(conn).get_by_imei(normalizar_imei(imei))
    if not aparelho:
        raise RegistroNaoEncontrado("Aparelho", imei)
    return aparelho


def registrar_aparelho(conn: sqlite3.Connection, dados: Dict[str, Any], agora: str) -> Dict[str, Any]:
    """Insere o aparelho ou reaproveita a linha de um IMEI inativo (vendido/desmontado)."""
    imei = exigir_imei_valido(dados["imei"])
    repo = AparelhoRepo(conn)
    existente = repo.get_by_imei(imei)
    if existente and existente["status"] not in StatusAparelho.INATIVOS:
        raise ImeiIndisponivel(imei, f"já está no estoque ({existente['status']})")

    registro = {
        "imei": imei,
        "marca": dados.get("marca"),
        "modelo": dados.get("modelo"),
        "cor": dados.get("cor"),
        "capacidade": dados.get("capacidade"),
        "categoria": dados.get("categoria") or "Novo",
        "saude_bateria": dados.get("saude_bateria"),
        "valor_custo": dinheiro(dados.get("valor_custo")),
        "valor_venda_sugerido": (
            dinheiro(dados["valor_venda_sugerido"]) if dados.get("valor_venda_sugerido") is not None else None
        ),
        "loja_id": dados.get("loja_id"),
        "status": dados.get("status") or StatusAparelho.DISPONIVEL,
        "status_anterior": existente["status"] if existente else None,
        "reserva_ref": None,
        "origem": dados.get("origem") or "Cadastro",
        "origem_ref": dados.get("origem_ref"),
        "data_entrada": agora,
        "data_atualizacao": agora,
    }
    if existente:
        repo.update(existente["id"], **registro)
        registro["id"] = existente["id"]
        log_database_operation("aparelho", "UPDATE", 1, imei=imei, reaproveitado=True)
    else:
        registro["id"] = gerar_id(conn, "PROD", 4)
        repo.insert(registro)
        log_database_operation("aparelho", "INSERT", 1, imei=imei)

    TimelineRepo(conn).registrar(
        "aparelho", registro["id"], "entrada",
        f"Entrada via {registro['origem']} ({registro['origem_ref'] or '-'})",
        agora, status_novo=registro["status"],
    )
    return registro


def reservar_imei(conn: sqlite3.Connection, imei: str, ref: str, agora: str) -> Dict[str, Any]:
    """Disponivel -> Reservado para `ref`. Levanta ImeiIndisponivel se já estiver alocado."""
    imei = normalizar_imei(imei)
    repo = AparelhoRepo(conn)
    if not repo.reservar(imei, ref, agora):
        atual = repo.get_by_imei(imei)
        if not atual:
            raise ImeiIndisponivel(imei, "não está cadastrado no estoque")
        detalhe = f"está '{atual['status']}'"
        if atual.get("reserva_ref"):
            detalhe += f" ({atual['reserva_ref']})"
        raise ImeiIndisponivel(imei, detalhe)
    log_evento("vendas", "reservar", imei, origem=ref)
    return repo.get_by_imei(imei)


def alterar_status_aparelho(
    conn: sqlite3.Connection,
    aparelho: Dict[str, Any],
    de: Iterable[str],
    para: str,
    ref: Optional[str],
    agora: str,
    descricao: Optional[str] = None,
) -> None:
    """Compare-and-set do status do aparelho com registro na timeline."""
    de = tuple(de)
    if not AparelhoRepo(conn).trocar_status(aparelho["id"], de, para, ref, agora):
        raise ImeiIndisponivel(aparelho["imei"], f"não está em {'/'.join(de)}")
    TimelineRepo(conn).registrar(
        "aparelho", aparelho["id"], "status", descricao or f"-> {para}", agora,
        status_anterior=aparelho["status"], status_novo=para,
    )


def liberar_reserva(conn: sqlite3.Connection, aparelho_id: str, ref: str, agora: str) -> None:
    """Devolve ao estoque um aparelho reservado por `ref`."""
    repo = AparelhoRepo(conn)
    aparelho = repo.get(aparelho_id)
    if not aparelho or aparelho["status"] != StatusAparelho.RESERVADO or aparelho["reserva_ref"] != ref:
        raise RegraViolada(f"Aparelho {aparelho_id} não está reservado por {ref}")
    alterar_status_aparelho(conn, aparelho, (StatusAparelho.RESERVADO,), StatusAparelho.DISPONIVEL, None, agora,
                            f"Reserva {ref} liberada")


def enviar_para_triagem(
    conn: sqlite3.Connection,
    aparelho: Dict[str, Any],
    origem: str,
    origem_ref: Optional[str],
    agora: str,
) -> Dict[str, Any]:
    """Cria o produto pendente de um aparelho que já está 'Em Triagem'."""
    pendente = {
        "id": gerar_id(conn, "PEND", 4),
        "aparelho_id": aparelho["id"],
        "imei": aparelho["imei"],
        "origem": origem,
        "origem_ref": origem_ref,
        "loja_id": aparelho.get("loja_id"),
        "status_geral": StatusPendente.PENDENTE_ESTOQUE,
        "custo_assistencia": dinheiro(0),
        "data_entrada": agora,
    }
    PendenteRepo(conn).insert(pendente)
    TimelineRepo(conn).registrar("pendente", pendente["id"], "entrada",
                                 f"Produto pendente via {origem} ({origem_ref or '-'})", agora,
                                 status_novo=pendente["status_geral"])
    log_evento("assistencia", "triagem", pendente["id"], imei=aparelho["imei"], origem=origem)
    return pendente


# -------------------------
# Casos de uso
# -------------------------

def cadastrar_aparelho(
    imei: str,
    marca: str,
    modelo: str,
    loja_id: str,
    valor_custo: Numero,
    categoria: str = "Novo",
    cor: Optional[str] = None,
    capacidade: Optional[str] = None,
    saude_bateria: Optional[int] = None,
    valor_venda_sugerido: Optional[Numero] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    dados = {
        "imei": imei, "marca": marca, "modelo": modelo, "loja_id": loja_id,
        "valor_custo": valor_custo, "categoria": categoria, "cor": cor,
        "capacidade": capacidade, "saude_bateria": saude_bateria,
        "valor_venda_sugerido": valor_venda_sugerido,
    }
    with operacao("aparelho_cadastrar", {"imei": imei, "loja": loja_id}) as ctx:
        with connect(db_path, imediato=True) as c:
            quando = carimbo(agora)
            aparelho = registrar_aparelho(c, dados, quando)
            custo = dinheiro(aparelho["valor_custo"])
            if custo > 0:
                lancar(c, f"Entrada manual {aparelho['imei']} ({aparelho['modelo']})",
                       [(ContaRazao.ESTOQUE, ContaRazao.AJUSTE_ESTOQUE, custo)], quando, "aparelho", aparelho["id"])
        ctx["resultado"] = aparelho["id"]
    return aparelho


def consultar_imei(imei: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    with connect(db_path) as c:
        aparelho = exigir_aparelho(c, imei)
        aparelho["timeline"] = TimelineRepo(c).listar("aparelho", aparelho["id"])
        return aparelho


def listar_aparelhos(
    loja_id: Optional[str] = None,
    status: Optional[str] = None,
    db_path: str = DB_PATH,
) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return AparelhoRepo(c).listar(loja_id, status)


def movimentar_aparelho(
    imei: str,
    loja_destino: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Transfere um aparelho disponível entre lojas."""
    quando = carimbo(agora)
    with operacao("aparelho_movimentar", {"imei": imei, "destino": loja_destino}):
        with connect(db_path, imediato=True) as c:
            aparelho = exigir_aparelho(c, imei)
            if aparelho["status"] != StatusAparelho.DISPONIVEL:
                raise ImeiIndisponivel(aparelho["imei"], f"está '{aparelho['status']}' e não pode ser movimentado")
            if aparelho["loja_id"] == loja_destino:
                raise RegraViolada("Loja de destino igual à loja atual")
            cur = c.execute(
                "UPDATE aparelho SET loja_id = ?, data_atualizacao = ? WHERE id = ? AND status = 'Disponivel'",
                (loja_destino, quando, aparelho["id"]),
            )
            if cur.rowcount != 1:
                raise ImeiIndisponivel(aparelho["imei"])
            TimelineRepo(c).registrar(
                "aparelho", aparelho["id"], "movimentacao",
                f"{aparelho['loja_id']} -> {loja_destino}", quando, responsavel=responsavel,
            )
            return {**aparelho, "loja_id": loja_destino, "data_atualizacao": quando}


# -------------------------
# Triagem (produtos pendentes)
# -------------------------

def _exigir_pendente(conn: sqlite3.Connection, pendente_id: str) -> Dict[str, Any]:
    pendente = PendenteRepo(conn).get(pendente_id)
    if not pendente:
        raise RegistroNaoEncontrado("Produto pendente", pendente_id)
    return pendente


def listar_pendentes(status: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return PendenteRepo(c).listar(status)


def salvar_parecer_estoque(
    pendente_id: str,
    parecer: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    if parecer not in PARECERES_ESTOQUE:
        raise RegraViolada(f"Parecer de estoque inválido: {parecer}")
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        pendente = _exigir_pendente(c, pendente_id)
        if pendente["status_geral"] != StatusPendente.PENDENTE_ESTOQUE:
            raise RegraViolada(f"Parecer de estoque só em '{StatusPendente.PENDENTE_ESTOQUE}'")
        PendenteRepo(c).update(pendente_id, parecer_estoque=parecer, parecer_estoque_resp=responsavel,
                               parecer_estoque_data=quando)
        pendente.update(parecer_estoque=parecer, parecer_estoque_resp=responsavel, parecer_estoque_data=quando)
        if parecer == PARECER_ESTOQUE_ENCAMINHADO:
            pendente = transicionar(c, "pendente", pendente, FLUXO_PENDENTE, StatusPendente.EM_ANALISE,
                                    quando, responsavel, "Encaminhado para a assistência")
        else:
            TimelineRepo(c).registrar("pendente", pendente_id, "parecer_estoque", parecer, quando, responsavel)
        log_evento("assistencia", "parecer_estoque", pendente_id, parecer=parecer)
        return pendente


def salvar_parecer_assistencia(
    pendente_id: str,
    parecer: str,
    responsavel: str,
    pecas: Optional[List[Dict[str, Any]]] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Registra o parecer técnico; peças usadas somam ao custo de assistência."""
    if parecer not in PARECERES_ASSISTENCIA:
        raise RegraViolada(f"Parecer de assistência inválido: {parecer}")
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        repo = PendenteRepo(c)
        pendente = _exigir_pendente(c, pendente_id)
        if pendente["status_geral"] not in (StatusPendente.EM_ANALISE, StatusPendente.AGUARDANDO_PECA):
            raise RegraViolada("Produto não está em análise na assistência")

        for p in pecas or []:
            repo.add_peca(pendente_id, p.get("descricao"), dinheiro(p.get("valor")), quando)
        custo = soma(p["valor"] for p in repo.pecas(pendente_id))

        repo.update(pendente_id, parecer_assistencia=parecer, parecer_assistencia_resp=responsavel,
                    parecer_assistencia_data=quando, custo_assistencia=custo)
        pendente.update(parecer_assistencia=parecer, parecer_assistencia_resp=responsavel,
                        parecer_assistencia_data=quando, custo_assistencia=custo)

        if parecer == PARECER_ASSIST_AGUARDANDO_PECA:
            if pendente["status_geral"] != StatusPendente.AGUARDANDO_PECA:
                pendente = transicionar(c, "pendente", pendente, FLUXO_PENDENTE, StatusPendente.AGUARDANDO_PECA,
                                        quando, responsavel)
        elif pendente["status_geral"] == StatusPendente.AGUARDANDO_PECA:
            pendente = transicionar(c, "pendente", pendente, FLUXO_PENDENTE, StatusPendente.EM_ANALISE,
                                    quando, responsavel, f"Peça recebida: {parecer}")
        else:
            TimelineRepo(c).registrar("pendente", pendente_id, "parecer_assistencia", parecer, quando, responsavel)
        log_evento("assistencia", "parecer_assistencia", pendente_id, parecer=parecer, custo=str(custo))
        return pendente


def pode_liberar(pendente: Dict[str, Any]) -> bool:
    if pendente["parecer_estoque"] == PARECER_ESTOQUE_OK:
        return True
    return (
        pendente["parecer_estoque"] == PARECER_ESTOQUE_ENCAMINHADO
        and pendente["parecer_assistencia"] in (PARECER_ASSIST_CONFERIDO, PARECER_ASSIST_AJUSTES)
    )


def liberar_produto_pendente(
    pendente_id: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Libera o aparelho para venda; o custo de assistência entra no custo do aparelho."""
    quando = carimbo(agora)
    with operacao("pendente_liberar", {"pendente": pendente_id}):
        with connect(db_path, imediato=True) as c:
            pendente = _exigir_pendente(c, pendente_id)
            if not pode_liberar(pendente):
                raise RegraViolada("Liberação exige parecer de estoque OK ou assistência concluída")
            pendente = transicionar(c, "pendente", pendente, FLUXO_PENDENTE, StatusPendente.LIBERADO,
                                    quando, responsavel, "Produto liberado para estoque")
            aparelho = AparelhoRepo(c).get(pendente["aparelho_id"])
            alterar_status_aparelho(c, aparelho, (StatusAparelho.EM_TRIAGEM,), StatusAparelho.DISPONIVEL,
                                    None, quando, f"Liberado da triagem {pendente_id}")
            custo_assistencia = dinheiro(pendente["custo_assistencia"])
            if custo_assistencia > 0:
                AparelhoRepo(c).update(aparelho["id"],
                                       valor_custo=dinheiro(aparelho["valor_custo"]) + custo_assistencia)
                lancar(c, f"Custo de assistência {aparelho['imei']}",
                       [(ContaRazao.ESTOQUE, ContaRazao.AJUSTE_ESTOQUE, custo_assistencia)], quando,
                       "pendente", pendente_id)
            return pendente
