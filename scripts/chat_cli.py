#!/usr/bin/env python3
"""Interactive chat CLI for trying the EVA assistant against a running service."""

import argparse

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm, Prompt


class ChatCLI:
    """Terminal chat with EVA as a staff member of a firm."""

    def __init__(self, base_url: str, user_id: str):
        """Initialize chat CLI.

        Args:
            base_url: Service URL
            user_id: Staff user id sent as the `X-User-Id` header
        """
        self.base_url = base_url.rstrip("/")
        self.conversation_id: str | None = None
        self.page_route = "/"
        self.console = Console()
        self.client = httpx.Client(timeout=120.0, headers={"X-User-Id": user_id})

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]⚖️  Prima Facie EVA - Chat interativo[/bold blue]\n"
                "Digite suas mensagens para conversar com a assistente.\n"
                "Comandos: /help, /new, /page <rota>, /list, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Não foi possível conectar ao serviço em {self.base_url}.[/red]")
            return

        self.console.print("[green]✅ Conectado ao serviço EVA[/green]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]Você[/bold cyan]")
                command = user_input.strip().lower()

                if command in ["/quit", "/exit", "sair"]:
                    break
                elif command == "/help":
                    self._show_help()
                    continue
                elif command == "/new":
                    self.conversation_id = None
                    self.console.print("[yellow]🔄 Nova conversa iniciada[/yellow]")
                    continue
                elif command == "/list":
                    self._list_conversations()
                    continue
                elif command.startswith("/page"):
                    self.page_route = user_input.strip()[5:].strip() or "/"
                    self.console.print(f"[yellow]📍 Página atual: {self.page_route}[/yellow]")
                    continue
                elif command == "":
                    continue

                response = self._send_message(user_input)
                if response:
                    self._display_response(response)

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]👋 Até logo![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _error(self, response: httpx.Response) -> None:
        try:
            detail = response.json().get("error", response.text)
        except ValueError:
            detail = response.text
        self.console.print(f"[red]❌ Erro {response.status_code}: {detail}[/red]")

    def _send_message(self, message: str) -> dict | None:
        """Send one chat turn, keeping the conversation id between turns."""
        payload: dict = {"message": message, "pageContext": {"route": self.page_route}}
        if self.conversation_id:
            payload["conversationId"] = self.conversation_id

        try:
            with self.console.status("[dim]💭 Pensando...[/dim]"):
                response = self.client.post(f"{self.base_url}/api/ai/chat", json=payload)
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Erro de conexão: {e}[/red]")
            return None

        if response.status_code != 200:
            self._error(response)
            return None

        data = response.json()
        self.conversation_id = data.get("conversationId")
        return data

    def _display_response(self, response: dict) -> None:
        """Render the answer, then ask about any pending write proposals."""
        message = response.get("message", {})
        self.console.print(
            Panel(
                Markdown(message.get("content") or "_(sem resposta)_"),
                title="[bold green]🤖 EVA[/bold green]",
                subtitle=f"[dim]{message.get('tokensInput', 0)} + {message.get('tokensOutput', 0)} tokens[/dim]",
                border_style="green",
                padding=(1, 2),
            )
        )

        for result in message.get("toolResults") or []:
            output = result.get("output") or {}
            if output.get("requiresConfirmation"):
                self._confirm_proposal(result.get("executionId"), output)

    def _confirm_proposal(self, execution_id: str | None, output: dict) -> None:
        """Show a write proposal and submit the user's decision."""
        if not execution_id:
            self.console.print("[red]❌ Execução pendente não encontrada para esta proposta.[/red]")
            return

        self.console.print(
            Panel(
                Markdown(output.get("displayMessage", "")),
                title="[yellow]📝 Confirmação[/yellow]",
                border_style="yellow",
            )
        )
        approved = Confirm.ask("Executar esta ação?", default=False)
        response = self.client.post(
            f"{self.base_url}/api/ai/tools/confirm", json={"toolExecutionId": execution_id, "approved": approved}
        )
        if response.status_code != 200:
            self._error(response)
            return
        self.console.print(f"[green]✅ {response.json().get('message')}[/green]")

    def _list_conversations(self) -> None:
        response = self.client.get(f"{self.base_url}/api/ai/conversations")
        if response.status_code != 200:
            self._error(response)
            return
        rows = response.json().get("data", [])
        if not rows:
            self.console.print("[dim]Nenhuma conversa.[/dim]")
            return
        lines = "\n".join(f"• {row['id']}  {row.get('title') or 'Sem título'}" for row in rows)
        self.console.print(Panel(lines, title="[cyan]💬 Conversas[/cyan]", border_style="cyan"))

    def _show_help(self) -> None:
        help_text = """
[bold]Comandos:[/bold]
• /help - Mostra esta ajuda
• /new - Inicia uma nova conversa
• /page <rota> - Define a página atual enviada como contexto (ex: /page /matters/123)
• /list - Lista suas conversas
• /quit - Sai do chat

[bold]Exemplos:[/bold]
1. "Quais processos ativos temos?"
2. "Resuma o processo 2024-001"
3. "Crie uma tarefa para protocolar o recurso amanhã"
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Ajuda[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    parser = argparse.ArgumentParser(description="Chat com a EVA")
    parser.add_argument("base_url", nargs="?", default="http://localhost:8000", help="URL do serviço")
    parser.add_argument("--user-id", required=True, help="ID do usuário da equipe (cabeçalho X-User-Id)")
    args = parser.parse_args()

    ChatCLI(args.base_url, args.user_id).start()


if __name__ == "__main__":
    main()
