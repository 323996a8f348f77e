from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import sessionmaker
from rentlotto.db.engine import make_engine
from rentlotto.ledger import TicketLedger
from rentlotto.models import AdminConfig, Base, LotteryRound
from rentlotto.whitelist import WhitelistVerifier

DEV_DEPOSITORS = (
    ("0x1111111111111111111111111111111111111111", 5),
    ("0x2222222222222222222222222222222222222222", 5),
    ("0x3333333333333333333333333333333333333333", 5),
)


def main() -> None:
    """Seed the development database with an open round and a few deposits."""
    engine = make_engine()

    # SQLite struggles with the round/ticket foreign-key cycle during DROP,
    # so foreign key checks are disabled for the reset.
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()

    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)

    # Open the round a week ago so the break can be requested right away.
    opened = datetime.now(timezone.utc) - timedelta(days=7)

    with Session.begin() as session:
        config = AdminConfig.load(session)
        config.winner_count = 1
        config.protocol_fee_bps = 500
        config.rent_fee_bps = 1000
        config.rent_amount = 1

        round = LotteryRound(opened_at=opened)
        session.add(round)
        session.flush()

        ledger = TicketLedger(session, WhitelistVerifier(session, None))
        for address, value in DEV_DEPOSITORS:
            ledger.deposit(round, address, value, now=opened)

    print("Seed data inserted.")


if __name__ == "__main__":
    main()
