import asyncio
import sys

from xrpl_wallet_auth import AuthFlow, FlowHooks, FlowState, Provider
from xrpl_wallet_auth.client import AuthHttpClient

hooks = FlowHooks()


@hooks.on_authenticated()
def on_authenticated(grant):
    print(f"Signed in as {grant.address}")
    print(f"Session token: {grant.token}")


@hooks.on_failed()
def on_failed(failure):
    print(f"Sign-in failed ({failure.category}): {failure.message}")


async def main(base_url: str):
    flow = AuthFlow(AuthHttpClient(base_url), hooks=hooks)

    payload = await flow.request(Provider.XUMM)
    if payload is None:
        return

    print(f"Open in XUMM: {payload.deep_link}")
    print(f"Or scan: {payload.qr_image_ref}")

    try:
        state = await flow.wait()
    except asyncio.CancelledError:
        await flow.disconnect()
        raise
    if state is not FlowState.AUTHENTICATED:
        await flow.disconnect()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "http://localhost:10000"))
