import abc


class PricingEngine(abc.ABC):
    """Abstract interface for the manual engines.

    ``price`` takes a ``CallableBondSpec`` and a short-rate model and returns
    the NPV at the curve reference date. Engines keep no state between calls.
    """

    @abc.abstractmethod
    def price(self, bond, model):
        raise NotImplementedError
