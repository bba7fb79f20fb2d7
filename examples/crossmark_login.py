import asyncio
import os

from nacl.signing import SigningKey

from xrpl_wallet_auth import AuthFlow, AuthService, FlowHooks, LocalBackend, Provider, Settings, WalletAccountClaim
from xrpl_wallet_auth.security.ledger import derive_address

hooks = FlowHooks()


@hooks.on_state_change()
def on_state_change(old, new):
    print(f"{old.value} -> {new.value}")


@hooks.on_authenticated()
async def on_authenticated(grant):
    print(f"Signed in as {grant.address}")


@hooks.on_failed()
def on_failed(failure):
    print(f"Sign-in failed ({failure.category}): {failure.message}")


async def main():
    settings = Settings(session_secret=os.environ.get("ENC_KEY", "local-example-secret-0123456789ab"))
    flow = AuthFlow(LocalBackend(AuthService(settings)), hooks=hooks)

    # Stand-in for the browser extension's keypair
    key = SigningKey.generate()
    public_key = "ED" + key.verify_key.encode().hex().upper()
    claim = WalletAccountClaim(public_key, derive_address(public_key), Provider.CROSSMARK)

    challenge = await flow.request(Provider.CROSSMARK, claim)
    signature = key.sign(bytes.fromhex(challenge.value)).signature.hex().upper()
    await flow.submit_signature(signature)

    print(flow.snapshot())
    await flow.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
