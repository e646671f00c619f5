"""Summary: Auto-reply message templates.

Importance: Offers ready-made auto-reply texts for common professional situations.
Alternatives: Require users to write every auto-reply message manually.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MESSAGE = (
    "Recebi sua mensagem! No momento estou em atendimento, mas retorno assim que possível. "
    "Obrigado pela compreensão."
)


@dataclass(frozen=True)
class MessageTemplate:
    """Summary: Represents a named auto-reply text.

    Importance: Lets the mobile client fill the settings form in one tap.
    Alternatives: Store templates in JSON files outside the codebase.
    """

    id: str
    name: str
    message: str


def list_templates() -> list[MessageTemplate]:
    """Summary: Return available auto-reply templates.

    Importance: Powers the template picker in the settings screen.
    Alternatives: Let each profession register its own templates.
    """

    return [
        MessageTemplate(id="default", name="Padrão", message=DEFAULT_MESSAGE),
        MessageTemplate(
            id="meeting",
            name="Em reunião",
            message=(
                "Olá! Estou em uma reunião no momento. Assim que possível, entrarei em contato. "
                "Obrigado!"
            ),
        ),
        MessageTemplate(
            id="lunch",
            name="Horário de almoço",
            message=(
                "Estou no horário de almoço (12h às 14h). Retorno assim que voltar. "
                "Obrigado pela compreensão!"
            ),
        ),
        MessageTemplate(
            id="vacation",
            name="Férias",
            message=(
                "Estou em período de férias até [DATA]. Para assuntos urgentes, entre em contato "
                "com [CONTATO]. Obrigado!"
            ),
        ),
        MessageTemplate(
            id="medical",
            name="Médico - Em consulta",
            message=(
                "Estou em atendimento no momento. Analisarei sua mensagem assim que possível. "
                "Em caso de urgência, procure o pronto-socorro mais próximo."
            ),
        ),
        MessageTemplate(
            id="lawyer",
            name="Advogado - Em audiência",
            message=(
                "Estou em audiência no momento. Retornarei seu contato assim que possível. "
                "Obrigado pela compreensão."
            ),
        ),
    ]
