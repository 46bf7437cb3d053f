from __future__ import annotations

import argparse
from datetime import date

from nutriapp import agenda, auth_service, cadastros, clientes, notificacoes
from nutriapp.config import get_settings
from nutriapp.db import init_db
from nutriapp.errors import NutriAppError
from nutriapp.logs import configure_logging
from nutriapp.seed import seed_base


def cmd_init(args: argparse.Namespace) -> None:
    seed_base()
    print("Banco inicializado e seed concluído.")


def cmd_criar_usuario(args: argparse.Namespace) -> None:
    u = auth_service.criar_usuario(args.nome, args.email, args.senha, papel=args.papel)
    print(f"Usuário criado: {u['id']} ({u['role']})")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "usuarios":
        for u in auth_service.listar_usuarios():
            print(f"{u['id']} | {u['nome']} | {u['email']} | {u['role']}{'' if u['ativo'] else ' (inativo)'}")
    elif args.entity == "clientes":
        itens, _ = clientes.listar_clientes(ativo=True, page=1, limit=100)
        for c in itens:
            print(f"{c['id']} | {c['nome']} | {c['telefone']} | {c['email'] or '-'}")
    elif args.entity == "servicos":
        for sv in cadastros.listar_ativos("servicos"):
            print(f"{sv['id']} | {sv['nome']} ({sv['tempoMinutos']} min) | R$ {sv['valorParticular']:.2f}")
    elif args.entity == "locais":
        for loc in cadastros.listar_ativos("locais-atendimento"):
            print(f"{loc['id']} | {loc['nome']} | {loc['endereco']}")
    elif args.entity == "agenda-hoje":
        for a in agenda.agendamentos_hoje():
            print(f"{a['hora']} | {a['clienteNome']} | {a['profissionalNome']} | {a['status']}")


def cmd_lembretes(args: argparse.Namespace) -> None:
    n = notificacoes.gerar_lembretes(args.dia)
    print(f"Lembretes gerados: {n}")


def cmd_notificacoes(args: argparse.Namespace) -> None:
    """
    Simula o sistema externo de notificações:
    - lista as pendentes
    - com --enviar, despacha para o webhook configurado
    """
    pendentes = notificacoes.notificacoes_pendentes_flat(limit=args.limit)
    if not pendentes:
        print("Nenhuma notificação pendente.")
        return

    for n in pendentes:
        print(f"[{n['id']}] {n['tipo']} | {n['criadaEm']} | {n['destinatario'] or '-'} | {n['mensagem']}")

    if args.enviar:
        enviadas = notificacoes.despachar(limit=args.limit)
        print(f"Notificações enviadas: {enviadas}")


def cmd_demo(args: argparse.Namespace) -> None:
    from nutriapp.demo import popular

    popular(meses=args.meses, reset=args.reset)
    print(f"OK: banco populado com dados dos últimos {args.meses} meses.")


def cmd_db_path(args: argparse.Namespace) -> None:
    print(get_settings().database_url)


def cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("nutriapp.api_main:app", host=args.host, port=args.port, reload=args.reload)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nutriapp", description="CLI NutriApp (administração e sistemas externos)")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Cria as tabelas e carrega o seed")
    p_init.set_defaults(func=cmd_init)

    p_user = sub.add_parser("criar-usuario", help="Cria um usuário")
    p_user.add_argument("--nome", required=True)
    p_user.add_argument("--email", required=True)
    p_user.add_argument("--senha", required=True)
    p_user.add_argument("--papel", default="secretaria", choices=["secretaria", "profissional", "administrador"])
    p_user.set_defaults(func=cmd_criar_usuario)

    p_list = sub.add_parser("list", help="Lista entidades")
    p_list.add_argument("entity", choices=["usuarios", "clientes", "servicos", "locais", "agenda-hoje"])
    p_list.set_defaults(func=cmd_list)

    p_lem = sub.add_parser("lembretes", help="Gera lembretes dos agendamentos do dia (padrão: amanhã)")
    p_lem.add_argument("--dia", type=date.fromisoformat, default=None, help="Data ISO, ex: 2026-01-14")
    p_lem.set_defaults(func=cmd_lembretes)

    p_not = sub.add_parser("notificacoes", help="Lista (e envia) notificações pendentes")
    p_not.add_argument("--limit", type=int, default=50)
    p_not.add_argument("--enviar", action="store_true", help="Envia ao webhook configurado (NUTRIAPP_WEBHOOK_URL)")
    p_not.set_defaults(func=cmd_notificacoes)

    p_demo = sub.add_parser("demo", help="Popula o banco com dados de demonstração")
    p_demo.add_argument("--meses", type=int, default=3)
    p_demo.add_argument("--reset", action=argparse.BooleanOptionalAction, default=True, help="Apaga os dados antes")
    p_demo.set_defaults(func=cmd_demo)

    p_path = sub.add_parser("db-path", help="Mostra a URL do banco em uso")
    p_path.set_defaults(func=cmd_db_path)

    p_serve = sub.add_parser("serve", help="Sobe a API (uvicorn)")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true")
    p_serve.set_defaults(func=cmd_serve)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging()
    init_db()  # garante as tabelas
    try:
        args.func(args)
    except NutriAppError as e:
        print(f"Erro: {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
