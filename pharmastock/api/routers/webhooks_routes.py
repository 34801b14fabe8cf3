# pharmastock/api/routers/webhooks_routes.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from pharmastock.api.deps import get_actor, get_services
from pharmastock.core.identity import Actor
from pharmastock.schemas.webhook import WebhookCreateIn, WebhookListOut, WebhookOut, WebhookUpdateIn
from pharmastock.services.wiring import Services


def register(router: APIRouter) -> None:
    @router.get("", response_model=WebhookListOut)
    async def list_webhooks(
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> WebhookListOut:
        subs = await services.webhooks.list(actor)
        return WebhookListOut(webhooks=[WebhookOut.model_validate(s) for s in subs])

    @router.post("", response_model=WebhookOut, status_code=201)
    async def create_webhook(
        payload: WebhookCreateIn,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> WebhookOut:
        sub = await services.webhooks.create(actor, **payload.model_dump())
        return WebhookOut.model_validate(sub)

    @router.patch("/{subscription_id}", response_model=WebhookOut)
    async def update_webhook(
        subscription_id: int,
        payload: WebhookUpdateIn,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> WebhookOut:
        sub = await services.webhooks.update(
            actor, subscription_id, payload.model_dump(exclude_unset=True)
        )
        return WebhookOut.model_validate(sub)

    @router.delete("/{subscription_id}", status_code=204)
    async def delete_webhook(
        subscription_id: int,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> Response:
        await services.webhooks.delete(actor, subscription_id)
        return Response(status_code=204)


__all__ = ["register"]
