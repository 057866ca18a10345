"""Tests for wrapper chains on coroutine methods."""

import asyncio

import pytest

from chainpatch import ChainAware, assign, register


async def async_retval(value):
    """Return value after yielding to the event loop once."""
    await asyncio.sleep(0)
    return value


class TestWrapperAsync:
    """Tests for async wrappers around async methods."""

    @pytest.mark.asyncio
    async def test_basic_functionality(self):
        """Test wrappers, reassignment and more wrappers on an async method."""
        original_value = 1

        class A:
            def x(self):
                return async_retval(1)

        a = A()
        assert await a.x() == original_value

        async def wrapper1(self, wrapped):
            assert await wrapped() == original_value
            return 10

        register(A, "x", wrapper1, module="m1")
        assert await a.x() == 10

        async def wrapper2(self, wrapped):
            result = await async_retval(20)
            assert await wrapped() == 10
            return result

        register(A, "x", wrapper2, module="m2")
        assert await a.x() == 20

        assign(A, "x", lambda self: async_retval(2))
        original_value = 2
        assert await a.x() == 20

        async def wrapper3(self, wrapped):
            await async_retval(10)
            assert await wrapped() == 20
            return 30

        register(A, "x", wrapper3, module="m3")
        assert await a.x() == 30

        assign(A, "x", lambda self: async_retval(3))
        original_value = 3
        assert await a.x() == 30

    @pytest.mark.asyncio
    async def test_parameters(self):
        """Test arguments flow through async wrappers."""

        class A:
            def y(self, ret=1):
                return async_retval(ret)

        a = A()
        assert await a.y() == 1
        assert await a.y(100) == 100

        async def wrapper(self, wrapped, ret=1):
            assert await wrapped(ret) == ret
            return 1000

        register(A, "y", wrapper, module="m1")

        assert await a.y() == 1000
        assert await a.y(3) == 1000
        assert await a.y(5) == 1000

    @pytest.mark.asyncio
    async def test_traditional_monkeypatch(self):
        """Test replacing the method the old way, keeping the previous one."""
        original_value = 1
        wrapped_value = 1

        class A(metaclass=ChainAware):
            def z(self, y):
                return async_retval(y)

        a = A()
        assert await a.z(1) == original_value

        async def wrapper(self, wrapped, *args):
            assert await wrapped(*args) == original_value
            return 100

        register(A, "z", wrapper, module="m1")
        assert await a.z(1) == 100

        original = A.z

        async def patched(self, *args):
            assert await original(self, *args) == wrapped_value
            return 2

        A.z = patched
        original_value = 2

        assert await a.z(1) == 100
        wrapped_value = 2
        assert await a.z(2) == 100

    @pytest.mark.asyncio
    async def test_replace_on_instance(self):
        """Test assigning on an instance, then wrapping the instance by hand."""
        wrapper1_value = 1

        class A:
            def x(self):
                return async_retval(1)

        a = A()
        assert await a.x() == 1

        async def wrapper1(self, wrapped):
            result = await wrapped()
            assert result == wrapper1_value
            return result + 1

        register(A, "x", wrapper1, module="m1")
        assert await a.x() == 2

        a.x = lambda: async_retval(20)
        wrapper1_value = 20
        assert await a.x() == 21

        b = A()
        wrapper1_value = 1
        assert await b.x() == 2

        instance_value = 1
        wrapper1_value = 2
        b_original = b.x

        async def manual(*args):
            result = await b_original()
            assert result == instance_value
            return result + 1

        b.x = manual
        assert await b.x() == 3

    @pytest.mark.asyncio
    async def test_inherited_class(self):
        """Test instance, sibling and superclass chains on async methods."""
        original_value = 1
        original_value2 = 1

        class B:
            def x(self):
                return async_retval(1)

        class A(B):
            pass

        class C(B):
            pass

        a = A()
        assert await a.x() == original_value

        async def wrapper1(self, wrapped):
            assert await wrapped() == original_value
            return 10

        register(a, "x", wrapper1, module="m1")
        assert await a.x() == 10

        a.x = lambda: async_retval(20)
        original_value = 20
        assert await a.x() == 10

        a2 = A()
        assert await a2.x() == 1

        async def wrapper2(self, wrapped):
            assert await wrapped() == original_value2
            return 8

        register(C, "x", wrapper2, module="m2")
        c = C()
        assert await c.x() == 8

        async def wrapper3(self, wrapped):
            assert await wrapped() == original_value2
            return 5

        register(B, "x", wrapper3, module="m3")
        original_value = 5
        assert await a2.x() == 5

        async def wrapper4(self, wrapped):
            assert await wrapped() == original_value
            return 7

        register(A, "x", wrapper4, module="m4")
        assert await a2.x() == 7

    @pytest.mark.asyncio
    async def test_rejection_propagates(self):
        """Test an exception raised inside the coroutine reaches the awaiter."""

        class A:
            async def x(self):
                await asyncio.sleep(0)
                raise RuntimeError("rejected")

        async def wrapper(self, wrapped):
            return await wrapped()

        register(A, "x", wrapper, module="m1")

        with pytest.raises(RuntimeError, match="rejected"):
            await A().x()

    @pytest.mark.asyncio
    async def test_coroutine_returned_untouched(self):
        """Test a sync wrapper can pass the base's coroutine straight through."""

        class A:
            async def x(self):
                return 1

        calls = []

        def wrapper(self, wrapped):
            calls.append("sync")
            return wrapped()

        register(A, "x", wrapper, module="m1")

        pending = A().x()
        assert asyncio.iscoroutine(pending)
        assert calls == ["sync"]
        assert await pending == 1

    @pytest.mark.asyncio
    async def test_saved_handler_after_reassignment(self):
        """Test an async method saved before reassignment still runs the wrappers."""

        class A(metaclass=ChainAware):
            async def x(self):
                return await async_retval(1)

        async def wrapper(self, wrapped):
            return await wrapped() + 10

        register(A, "x", wrapper, module="m1")
        a = A()
        handler = a.x

        async def replacement(self):
            return await async_retval(2)

        A.x = replacement

        assert await handler() == 12
        assert await a.x() == 12
