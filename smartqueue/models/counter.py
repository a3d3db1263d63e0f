from smartqueue.extensions import db


class Counter(db.Model):
    __tablename__ = "counters"

    name = db.Column(db.String(32), primary_key=True)
    value = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {"name": self.name, "value": self.value}
