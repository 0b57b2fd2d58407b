import unittest
from itertools import islice

from hamcrest import assert_that, is_, calling, raises, empty, contains_exactly

from clustercontrol.endpoint import Endpoint
from clustercontrol.host import HostMap
from clustercontrol.policies import ConstantReconnectionPolicy, ExponentialReconnectionPolicy, IdentityTranslator, \
    RoundRobinPolicy, ReconnectionPolicy, AddressTranslator


class ConstantReconnectionPolicyTest(unittest.TestCase):

    def test_unbounded_schedule(self):
        schedule = ConstantReconnectionPolicy(2.5).new_schedule()
        assert_that(list(islice(schedule, 100)), is_([2.5] * 100))

    def test_bounded_schedule(self):
        assert_that(list(ConstantReconnectionPolicy(1, max_attempts=3).new_schedule()), is_([1, 1, 1]))

    def test_each_schedule_is_new(self):
        sut = ConstantReconnectionPolicy(1, max_attempts=1)
        assert_that(list(sut.new_schedule()), is_([1]))
        assert_that(list(sut.new_schedule()), is_([1]))

    def test_invalid_arguments(self):
        assert_that(calling(ConstantReconnectionPolicy).with_args(-1), raises(ValueError))
        assert_that(calling(ConstantReconnectionPolicy).with_args(1, -1), raises(ValueError))
        assert_that(calling(ConstantReconnectionPolicy).with_args(1, 0), raises(ValueError, "at least 1"))


class ExponentialReconnectionPolicyTest(unittest.TestCase):

    def test_delays_double_up_to_max(self):
        schedule = ExponentialReconnectionPolicy(1, 10).new_schedule()
        assert_that(list(islice(schedule, 7)), is_([1, 2, 4, 8, 10, 10, 10]))

    def test_bounded_schedule(self):
        assert_that(list(ExponentialReconnectionPolicy(0.5, 60, max_attempts=4).new_schedule()),
                    is_([0.5, 1.0, 2.0, 4.0]))

    def test_large_exponent_does_not_overflow(self):
        schedule = ExponentialReconnectionPolicy(2.0, 600.0).new_schedule()
        delays = list(islice(schedule, 2000))
        assert_that(delays[-1], is_(600.0))

    def test_invalid_arguments(self):
        assert_that(calling(ExponentialReconnectionPolicy).with_args(-1, 10), raises(ValueError))
        assert_that(calling(ExponentialReconnectionPolicy).with_args(10, 1), raises(ValueError))
        assert_that(calling(ExponentialReconnectionPolicy).with_args(1, 10, -1), raises(ValueError))
        assert_that(calling(ExponentialReconnectionPolicy).with_args(1, 10, 0), raises(ValueError, "at least 1"))

    def test_abstract_policy(self):
        assert_that(calling(ReconnectionPolicy().new_schedule), raises(NotImplementedError))


class IdentityTranslatorTest(unittest.TestCase):

    def test_translate(self):
        sut = IdentityTranslator()
        assert_that(sut.translate('10.0.0.1', 9042), is_('10.0.0.1:9042'))
        assert_that(sut.translate('2001:db8::1', 9000), is_('[2001:db8::1]:9000'))

    def test_abstract_translator(self):
        assert_that(calling(AddressTranslator().translate).with_args('a', 1), raises(NotImplementedError))


class RoundRobinPolicyTest(unittest.TestCase):

    def setUp(self):
        self.hosts = HostMap()
        self.sut = RoundRobinPolicy()
        self.sut.populate(self.hosts)

    def add(self, *addresses):
        return [self.hosts.add_or_get(Endpoint(a))[0] for a in addresses]

    def test_no_hosts(self):
        assert_that(list(self.sut.new_query_plan()), is_(empty()))

    def test_unpopulated(self):
        assert_that(list(RoundRobinPolicy().new_query_plan()), is_(empty()))

    def test_plans_rotate(self):
        a, b, c = self.add('10.0.0.1', '10.0.0.2', '10.0.0.3')
        assert_that(list(self.sut.new_query_plan()), contains_exactly(a, b, c))
        assert_that(list(self.sut.new_query_plan('ks')), contains_exactly(b, c, a))
        assert_that(list(self.sut.new_query_plan()), contains_exactly(c, a, b))

    def test_hosts_marked_down_are_skipped(self):
        a, b = self.add('10.0.0.1', '10.0.0.2')
        a.set_down()
        b.set_up()
        assert_that(list(self.sut.new_query_plan()), contains_exactly(b))

    def test_sees_hosts_added_later(self):
        assert_that(list(self.sut.new_query_plan()), is_(empty()))
        a, = self.add('10.0.0.1')
        assert_that(list(self.sut.new_query_plan()), contains_exactly(a))
