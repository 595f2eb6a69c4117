from datetime import datetime

# (attribute, wire name) pairs, in the order a record enumerates its fields
FORM_FIELDS = [
    ('team_name', 'teamName'),
    ('head_name', 'headName'),
    ('head_email', 'headEmail'),
    ('password', 'password'),
    ('head_reg_no', 'headRegNo'),
    ('contact', 'contact'),
    ('alt_contact', 'altContact'),
    ('member1_name', 'member1Name'),
    ('member1_reg', 'member1Reg'),
    ('member2_name', 'member2Name'),
    ('member2_reg', 'member2Reg'),
]

SERVER_FIELDS = [
    ('team_number', 'teamNumber'),
    ('round2', 'round2'),
    ('certificate_sent', 'certificateSent'),
    ('created_at', 'createdAt'),
]

FORM_KEYS = [key for _, key in FORM_FIELDS]
FLAG_KEYS = ('round2', 'certificateSent')
IMMUTABLE_KEYS = ('id', 'teamNumber', 'createdAt')


def empty_form():
    """Blank form values keyed by wire name."""
    return {key: '' for key in FORM_KEYS}


class Registration:
    def __init__(self, team_name, head_name, head_email, password, head_reg_no, contact,
                 member1_name, member1_reg, member2_name, member2_reg, alt_contact=None,
                 id=None, team_number=None, round2=False, certificate_sent=False, created_at=None):
        self.id = id
        self.team_name = team_name
        self.head_name = head_name
        self.head_email = head_email
        self.password = password
        self.head_reg_no = head_reg_no
        self.contact = contact
        self.alt_contact = alt_contact
        self.member1_name = member1_name
        self.member1_reg = member1_reg
        self.member2_name = member2_name
        self.member2_reg = member2_reg
        self.team_number = team_number
        self.round2 = round2
        self.certificate_sent = certificate_sent
        self.created_at = created_at or datetime.now()

    @classmethod
    def from_dict(cls, data):
        """Build a record from a wire/YAML dict. Unknown keys are ignored."""
        kwargs = {}
        for attr, key in FORM_FIELDS + SERVER_FIELDS:
            if key in data:
                kwargs[attr] = data[key]
        for attr in ('team_name', 'head_name', 'head_email', 'password', 'head_reg_no',
                     'contact', 'member1_name', 'member1_reg', 'member2_name', 'member2_reg'):
            kwargs.setdefault(attr, '')
        created = kwargs.get('created_at')
        if isinstance(created, str):
            kwargs['created_at'] = datetime.fromisoformat(created)
        kwargs['round2'] = bool(kwargs.get('round2', False))
        kwargs['certificate_sent'] = bool(kwargs.get('certificate_sent', False))
        return cls(id=data.get('id'), **kwargs)

    def to_dict(self, include_password=True):
        data = {'id': self.id}
        for attr, key in FORM_FIELDS + SERVER_FIELDS:
            if key == 'password' and not include_password:
                continue
            data[key] = getattr(self, attr)
        data['createdAt'] = self.created_at.isoformat()
        return data

    def to_public_dict(self):
        """Representation returned over HTTP; never carries the password."""
        return self.to_dict(include_password=False)

    def __repr__(self):
        return (f"Registration(id={self.id}, team_name={self.team_name}, "
                f"team_number={self.team_number}, round2={self.round2}, "
                f"certificate_sent={self.certificate_sent})")


class OtpEntry:
    def __init__(self, code, issued_at):
        self.code = code
        self.issued_at = issued_at  # seconds since the epoch

    def is_expired(self, now, ttl_seconds):
        return now - self.issued_at > ttl_seconds

    def __repr__(self):
        return f"OtpEntry(issued_at={self.issued_at})"
