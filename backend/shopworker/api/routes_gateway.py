# app/api/routes_gateway.py
# 投递入口：/<job-identity>，必须最后注册（catch-all）

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from starlette.concurrency import run_in_threadpool

from shopworker.api.deps import get_gateway
from shopworker.services.gateway_service import GatewayRequest, GatewayResponse, RequestGateway


router = APIRouter(tags=["gateway"])


def _to_response(resp: GatewayResponse) -> Response:
    headers = dict(resp.headers)
    media_type = headers.pop("Content-Type", None)
    return Response(content=resp.render(), status_code=resp.status_code, headers=headers, media_type=media_type)


'''
Shopify webhook / shopworker webhook / webrequest 都从这里进：
   - raw body 原样交给 gateway（HMAC 必须基于原始字节）
   - handler 是同步代码（requests），放到线程池里执行
'''
@router.api_route("/{job_path:path}", methods=["GET", "POST", "OPTIONS"], include_in_schema=False)
async def receive(job_path: str, request: Request, gateway: RequestGateway = Depends(get_gateway)):
    raw = await request.body()
    req = GatewayRequest(
        method=request.method,
        path=job_path,
        query=dict(request.query_params),
        headers=dict(request.headers),
        body=raw,
    )
    resp = await run_in_threadpool(gateway.handle, req)
    return _to_response(resp)
