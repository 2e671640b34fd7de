from fastapi import FastAPI

from jewelry_retail.routers import invoices, returns

app = FastAPI(title='Jewellery Retail')

app.include_router(invoices.router)
app.include_router(returns.router)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}
