# medstock/services/trend_service.py
"""
Consumption-trend advisory: two strings in (history, seasonal notes,
strategic levels), two strings out (trend description, reorder
recommendations), through an OpenAI-compatible chat-completions endpoint.
"""

from __future__ import annotations

import json
import logging

import httpx
from sqlalchemy.orm import Session

from medstock.core.config import get_settings
from medstock.core.errors import AdvisoryUnavailable
from medstock.schemas.trends import (
    TrendAnalysisRequest,
    TrendAnalysisResponse,
    TrendContextResponse,
)
from medstock.services.access_policy import AccessPolicy
from medstock.services.report_service import consumption_history
from medstock.services.stock_service import build_config_grid

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Você é um analista especialista em cadeia de suprimentos para uma rede de "
    "hospitais.\n\n"
    "Você recebe dados históricos de consumo (incluindo hospital e unidade "
    "servida), descrições de padrões sazonais e níveis estratégicos de estoque "
    "(para armazém central e para cada unidade/hospital).\n\n"
    "Analise os dados e gere visualizações de tendências e recomendações de "
    "reposição de estoque. Considere as diferenças de consumo entre diferentes "
    "hospitais e unidades servidas."
)

USER_PROMPT_TEMPLATE = """Dados Históricos: {historical_data}
Padrões Sazonais: {seasonal_patterns}
Níveis Estratégicos de Estoque: {strategic_stock_levels}

Com base nessas informações, forneça o seguinte EM PORTUGUÊS:

Visualizações de Tendências: Uma descrição das principais tendências de consumo, incluindo variações sazonais e destacando quaisquer diferenças significativas ou padrões específicos por hospital ou unidade servida.
Recomendações de Reposição: Recomendações específicas de reposição para cada item, detalhando se a reposição é para o Armazém Central ou para uma unidade/hospital específico. Considere os níveis de estoque atuais, níveis estratégicos e consumo previsto para cada local.

Responda somente com um objeto JSON com as chaves "trend_visualizations" e "reorder_recommendations", ambas com texto."""


def build_messages(request: TrendAnalysisRequest) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": USER_PROMPT_TEMPLATE.format(
                historical_data=request.historical_data,
                seasonal_patterns=request.seasonal_patterns,
                strategic_stock_levels=request.strategic_stock_levels,
            ),
        },
    ]


def _parse_completion(body: dict) -> TrendAnalysisResponse:
    content = body["choices"][0]["message"]["content"]
    data = json.loads(content)
    return TrendAnalysisResponse(
        trend_visualizations=str(data["trend_visualizations"]),
        reorder_recommendations=str(data["reorder_recommendations"]),
    )


def analyze_consumption_trends(
    request: TrendAnalysisRequest,
    *,
    client: httpx.Client | None = None,
) -> TrendAnalysisResponse:
    """
    Call the advisory model. Any transport, HTTP or shape problem surfaces
    as AdvisoryUnavailable; nothing is retried.
    """
    settings = get_settings()
    if not settings.advisory_api_key:
        raise AdvisoryUnavailable("Serviço de análise de tendências não configurado.")

    headers = {
        "Authorization": f"Bearer {settings.advisory_api_key}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": settings.advisory_model,
        "messages": build_messages(request),
        "response_format": {"type": "json_object"},
    }

    owns_client = client is None
    http = client or httpx.Client(timeout=settings.advisory_timeout_seconds)
    try:
        response = http.post(settings.advisory_api_url, json=payload, headers=headers)
        response.raise_for_status()
        result = _parse_completion(response.json())
    except httpx.HTTPError as exc:
        logger.exception("Advisory request failed url=%s", settings.advisory_api_url)
        raise AdvisoryUnavailable(
            "Falha ao consultar o serviço de análise de tendências."
        ) from exc
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        logger.exception("Advisory response could not be parsed")
        raise AdvisoryUnavailable(
            "Resposta inválida do serviço de análise de tendências."
        ) from exc
    finally:
        if owns_client:
            http.close()

    logger.info("Advisory analysis completed model=%s", settings.advisory_model)
    return result


def build_trend_context(db: Session, policy: AccessPolicy) -> TrendContextResponse:
    """Caller-visible consumption history and strategic levels as plain text."""
    history_lines = []
    for row in reversed(consumption_history(db, policy)):
        location = " / ".join(n for n in (row.hospital_name, row.unit_name) if n)
        history_lines.append(
            f"{row.date.isoformat()}; {row.item_code} {row.item_name}; "
            f"{row.quantity}; {location or 'Armazém Central'}"
        )

    level_lines = []
    for cfg in build_config_grid(db, policy):
        if not cfg.strategic_stock_level and not cfg.min_quantity:
            continue
        location = " / ".join(n for n in (cfg.hospital_name, cfg.unit_name) if n)
        level_lines.append(
            f"{cfg.item_code} {cfg.item_name} @ {location or 'Armazém Central'}: "
            f"estratégico {cfg.strategic_stock_level}, mínimo {cfg.min_quantity}, "
            f"atual {cfg.current_quantity}"
        )

    return TrendContextResponse(
        historical_data="\n".join(history_lines),
        strategic_stock_levels="\n".join(level_lines),
    )
