from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import pytest
import sqlalchemy as sa

from sqla_cascade import KeyProducer

from ..models import (
    City,
    Country,
    District,
    Person,
    Pet,
    Species,
    Toy,
    city_builder,
    country_builder,
    person_builder,
)


@dataclass
class World:
    germany: Country
    france: Country
    berlin: City
    paris: City
    ann: Person
    bob: Person
    cid: Person

    @property
    def people(self) -> list[Person]:
        return [self.ann, self.bob, self.cid]


@pytest.fixture
def world(connection: sa.Connection, key_producer: KeyProducer | None) -> World:
    """Two cities with districts, three people with pets and toys."""
    countries = country_builder().build_dao(connection, key_producer)
    germany = Country(name="Germany")
    france = Country(name="France")
    countries.insert(germany)
    countries.insert(france)

    cities = city_builder().build_dao(connection, key_producer)
    berlin = City(
        name="Berlin",
        country=germany,
        districts=[District(name="Mitte"), District(name="Pankow")],
    )
    paris = City(name="Paris", country=france, districts=[District(name="Marais")])
    cities.insert(berlin)
    cities.insert(paris)

    ann = Person(
        name="Ann",
        admin=True,
        salary=Decimal("1234.50"),
        born=datetime(1990, 5, 1, 12, 30),
        score=3.5,
        home=berlin,
        work=paris,
        pets=[
            Pet(name="Rex", species=Species.DOG, toys=[Toy(name="ball"), Toy(name="bone")]),
            Pet(name="Tom", species=Species.CAT),
        ],
    )
    bob = Person(
        name="Bob",
        salary=Decimal("99.00"),
        score=1.5,
        active=False,
        home=paris,
        work=berlin,
        pets=[Pet(name="Nemo", species=Species.FISH, toys=[Toy(name="castle")])],
    )
    cid = Person(name="Cid", score=0.5, home=berlin, work=berlin)

    people = person_builder().build_dao(connection, key_producer)
    for person in (ann, bob, cid):
        people.insert(person)

    return World(germany, france, berlin, paris, ann, bob, cid)
