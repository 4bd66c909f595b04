# scripts/mint_ticket.py
import os  # read environment variables
import sys  # exit codes
import argparse  # parse CLI args
from datetime import datetime, timezone  # issuance time

from ticketing.errors import TicketError  # decode failures
from ticketing.security import TICKET_TTL, TicketCodec, to_millis  # ticket wire format


def main() -> None:  # main entrypoint
    parser = argparse.ArgumentParser(description="Mint or inspect a QR check-in ticket")  # CLI parser
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--registration-id")  # registration to mint a ticket for
    group.add_argument("--decode", metavar="TOKEN")  # token to verify and print
    args = parser.parse_args()  # parse args

    secret = os.environ.get("TICKET_SIGNING_SECRET")  # signing secret
    if not secret:
        sys.exit("TICKET_SIGNING_SECRET is not set")
    codec = TicketCodec(secret)

    if args.decode:
        try:
            ticket = codec.decode(args.decode)  # raises on bad structure or signature
        except TicketError as e:
            sys.exit(f"invalid ticket: {e.kind.value} ({e.detail})")
        now_ms = to_millis(datetime.now(timezone.utc))
        print(f"registration_id={ticket.registration_id}")
        print(f"issued_at={ticket.issued_at}")
        print(f"expires_at={ticket.expires_at}")
        print(f"expired={ticket.is_expired(now_ms)}")
        return

    now = datetime.now(timezone.utc)  # issuance time
    token = codec.encode(args.registration_id, to_millis(now), to_millis(now + TICKET_TTL))  # sign ticket
    print(token)  # output token to stdout (not stored on the registration)


if __name__ == "__main__":  # run as script
    main()  # call main
