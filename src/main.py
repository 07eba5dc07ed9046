import logging

from network.deeplink_router import DeepLinkRouter
from network.simulated_wallet import SimulatedWallet
from phantom.config import DappConfig
from phantom.messages import ConnectResult, SignResult
from phantom.session import PhantomSession


def main() -> None:
    """Main function walking through connect, sign and disconnect against a simulated wallet."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print("=== Phantom Deep Link Demo ===")

    config = DappConfig(cluster="devnet")
    session = PhantomSession(config)
    router = DeepLinkRouter(config.redirect_scheme)
    session.attach(router)
    session.subscribe(lambda event: print(f"  [state] {event.state.value}"))

    wallet = SimulatedWallet()

    connect_request = session.begin_connect()
    print(f"Dapp opened: {connect_request.url}")
    connected: ConnectResult = router.dispatch(wallet.handle(connect_request.url))
    print(f"Wallet connected: {connected.public_key}")

    message = "Hello from PhantomConnect! Test message for signing."
    sign_request = session.begin_sign(message)
    print(f"Dapp opened: {sign_request.url[:80]}...")
    signed: SignResult = router.dispatch(wallet.handle(sign_request.url))
    print(f"Signature: {signed.signature}")

    print("\n=== Session Information ===")
    print(f"Address match: {connected.public_key == wallet.address}")
    print(f"Signature valid: {session.verify_signature(signed.signature)}")

    rejected: ConnectResult = router.dispatch(wallet.reject(session.begin_connect().url))
    print(f"Second connect rejected: {rejected.error}")

    session.disconnect()
    print(f"Final state: {session.state.value}")


if __name__ == "__main__":
    main()
