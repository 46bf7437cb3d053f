"""
Backend da clínica NutriApp.

Estrutura:
- config.py / logs.py / errors.py : configuração, logging (structlog) e erros de domínio
- db.py, models.py, auth_models.py : engine, sessões e modelos ORM
- auth_*.py                        : usuários, papéis, senhas e JWT
- cadastros.py                     : CRUD genérico dos cadastros
- clientes.py, agenda.py, prontuario.py, planejamento.py, documentos.py,
  financeiro.py, relatorios.py, notificacoes.py : lógica de domínio
- api_*.py                         : API REST (FastAPI)
- seed.py / demo.py / cli.py       : dados iniciais, dados de demonstração e CLI
"""
